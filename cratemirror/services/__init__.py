"""服务层：镜像引擎、本地同步、上游拉取与存储后端"""
