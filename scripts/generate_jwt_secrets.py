# scripts/generate_jwt_secrets.py
"""
產生並輪替 .env 內的 JWT 金鑰（SECRET_KEY / REFRESH_SECRET_KEY）。
寫入前會先備份成 .env.bak；輪替後所有既有 token 都會失效。

用法：python -m scripts.generate_jwt_secrets [--env-file .env]
"""
import argparse
import re
import secrets
import shutil
import sys
from pathlib import Path
from typing import Dict

from loguru import logger

from app.core.logging import setup_logging

SECRET_NAMES = ("SECRET_KEY", "REFRESH_SECRET_KEY")


def _set_env_value(content: str, name: str, value: str) -> str:
    pattern = re.compile(rf"^{name}=.*$", re.MULTILINE)
    if pattern.search(content):
        return pattern.sub(f"{name}={value}", content)
    if content and not content.endswith("\n"):
        content += "\n"
    return content + f"{name}={value}\n"


def rotate_jwt_secrets(env_path: Path) -> Dict[str, str]:
    """覆寫（或補上）兩把金鑰，回傳新值。.env 不存在時丟 FileNotFoundError。"""
    if not env_path.is_file():
        raise FileNotFoundError(f"{env_path} not found")

    shutil.copyfile(env_path, env_path.with_name(env_path.name + ".bak"))

    new_values = {name: secrets.token_hex(64) for name in SECRET_NAMES}
    content = env_path.read_text(encoding="utf-8")
    for name, value in new_values.items():
        content = _set_env_value(content, name, value)
    env_path.write_text(content, encoding="utf-8")
    return new_values


def main(argv=None) -> int:
    setup_logging()
    parser = argparse.ArgumentParser(description="Generate and rotate JWT secrets in .env")
    parser.add_argument("--env-file", default=".env", type=Path)
    args = parser.parse_args(argv)

    try:
        rotate_jwt_secrets(args.env_file)
    except FileNotFoundError:
        logger.error("{} file not found", args.env_file)
        return 1

    logger.info("✅ JWT secrets rotated in {} (backup: {}.bak)", args.env_file, args.env_file)
    return 0


if __name__ == "__main__":
    sys.exit(main())
