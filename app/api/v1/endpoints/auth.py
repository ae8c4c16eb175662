# app/api/v1/endpoints/auth.py
from fastapi import APIRouter, Depends, status

from app.core.deps import get_auth_service, get_client_meta, get_current_user_id
from app.schemas.auth import (
    AuthResponse,
    EmailVerificationRequest,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPair,
)
from app.schemas.common import ApiResponse, MessageOut, created, ok
from app.services import rate_limit
from app.services.auth import AuthService, ClientMeta

router = APIRouter(tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset link has been sent"
RESEND_VERIFICATION_MESSAGE = "If your email is not verified yet, a verification link has been sent"


# === 註冊（自動登入） ===
@router.post("/register", response_model=ApiResponse[AuthResponse], status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    meta: ClientMeta = Depends(get_client_meta),
    service: AuthService = Depends(get_auth_service),
):
    await rate_limit.enforce("register", meta.ip)
    result = await service.register(payload.name, payload.email, payload.password, meta)
    return created(result, "User registered successfully")


# === 登入（含 Redis Rate Limit） ===
@router.post("/login", response_model=ApiResponse[AuthResponse])
async def login(
    payload: LoginRequest,
    meta: ClientMeta = Depends(get_client_meta),
    service: AuthService = Depends(get_auth_service),
):
    """
    登入狀態機：失敗累計 → 達上限鎖定；鎖定到期後下一次登入自動解鎖。
    帳號不存在與密碼錯誤回相同訊息，避免帳號探測。
    """
    await rate_limit.enforce("login", meta.ip, payload.email)
    result = await service.login(payload.email, payload.password, meta)
    # ✅ 登入成功後清空 email+IP 的嘗試（避免誤鎖）
    await rate_limit.reset_success("login", meta.ip, payload.email)
    return ok(result, "Login successful")


# === Refresh Token 輪替 ===
@router.post("/refresh-token", response_model=ApiResponse[TokenPair])
async def refresh_token(payload: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    tokens = await service.refresh_token(payload.refresh_token)
    return ok(tokens, "Token refreshed successfully")


# === 單次登出 ===
@router.post("/logout", response_model=ApiResponse[MessageOut])
async def logout(
    payload: RefreshRequest,
    user_id: int = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
):
    await service.logout(user_id, payload.refresh_token)
    return ok(MessageOut(message="Logged out successfully"), "Logged out successfully")


# === 登出全部裝置 ===
@router.post("/revoke-all", response_model=ApiResponse[MessageOut])
async def revoke_all(
    user_id: int = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
):
    count = await service.revoke_all_sessions(user_id)
    return ok(MessageOut(message=f"Revoked {count} session(s)"), "All sessions revoked")


@router.get("/profile", response_model=ApiResponse[ProfileResponse])
async def profile(
    user_id: int = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
):
    return ok(await service.get_profile(user_id))


# === Email 驗證 ===
@router.post("/verify-email", response_model=ApiResponse[MessageOut])
async def verify_email(payload: EmailVerificationRequest, service: AuthService = Depends(get_auth_service)):
    await service.verify_email(payload.token)
    return ok(MessageOut(message="Email verified successfully"), "Email verified successfully")


@router.post("/resend-verification", response_model=ApiResponse[MessageOut])
async def resend_verification(
    user_id: int = Depends(get_current_user_id),
    meta: ClientMeta = Depends(get_client_meta),
    service: AuthService = Depends(get_auth_service),
):
    await rate_limit.enforce("verification", meta.ip)
    await service.resend_verification(user_id)
    return ok(MessageOut(message=RESEND_VERIFICATION_MESSAGE), RESEND_VERIFICATION_MESSAGE)


# === 忘記密碼 / 重設密碼 ===
@router.post("/forgot-password", response_model=ApiResponse[MessageOut])
async def forgot_password(
    payload: ForgotPasswordRequest,
    meta: ClientMeta = Depends(get_client_meta),
    service: AuthService = Depends(get_auth_service),
):
    # 不論 email 是否存在都回相同訊息
    await rate_limit.enforce("password-reset", meta.ip, payload.email)
    await service.forgot_password(payload.email)
    return ok(MessageOut(message=FORGOT_PASSWORD_MESSAGE), FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=ApiResponse[MessageOut])
async def reset_password(payload: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)):
    await service.reset_password(payload.token, payload.new_password)
    return ok(MessageOut(message="Password reset successfully"), "Password reset successfully")
