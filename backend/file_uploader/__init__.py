"""
上传文件到 GitHub 仓库并返回下载链接
"""
