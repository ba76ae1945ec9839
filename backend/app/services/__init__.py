# Business Services
# 直接从子模块导入：app.security.auth 依赖 app.services.errors，
# 而 user_service 又依赖 app.security.auth
