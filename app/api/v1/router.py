# app/api/v1/router.py
from fastapi import APIRouter

# 匯入所有已定義的 endpoint 模組
from .endpoints import auth, examples, health, jobs, users

# === API v1 主路由 ===
api_router = APIRouter()

# 系統健康檢查
api_router.include_router(health.router, prefix="/health", tags=["health"])

# 認證 / 登入 / Refresh Token / 驗證信 / 重設密碼
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])

# 使用者自己的資料
api_router.include_router(users.router, prefix="/users", tags=["users"])

# 範例 CRUD 資源（分頁、搜尋、軟刪除）
api_router.include_router(examples.router, prefix="/examples", tags=["examples"])

# 背景工作 dead-letter 管理
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
