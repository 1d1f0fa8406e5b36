"""核心层：身份模型、锁文件解析、配置与协议"""
