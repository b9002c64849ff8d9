# 业务逻辑服务包
