"""多語系欄位處理

多語系欄位以 {"en": ..., "es": ..., "ca": ..., "ar": ...} 存放，
讀取時才依請求語言挑選，缺漏時回退到英文。
"""
from fastapi import Request

SUPPORTED_LANGUAGES = ("en", "es", "ca", "ar")
DEFAULT_LANGUAGE = "en"


def detect_language(request: Request, user=None) -> str:
    """依序檢查 ?lang=、Accept-Language、X-Language、使用者偏好"""
    lang = request.query_params.get("lang")
    if lang in SUPPORTED_LANGUAGES:
        return lang

    accept = request.headers.get("accept-language")
    if accept:
        header_lang = accept.split(",")[0].split("-")[0].strip().lower()
        if header_lang in SUPPORTED_LANGUAGES:
            return header_lang

    x_lang = request.headers.get("x-language")
    if x_lang in SUPPORTED_LANGUAGES:
        return x_lang

    if user is not None and user.preferred_language in SUPPORTED_LANGUAGES:
        return user.preferred_language

    return DEFAULT_LANGUAGE


def localize(value, lang: str = DEFAULT_LANGUAGE) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        return value
    return value.get(lang) or value.get(DEFAULT_LANGUAGE) or ""


def normalize_text(value) -> dict:
    """把輸入的字串或 dict 整理成只含支援語系的 dict，並確保有英文"""
    if isinstance(value, str):
        return {DEFAULT_LANGUAGE: value.strip()}
    cleaned = {k: v.strip() for k, v in (value or {}).items() if k in SUPPORTED_LANGUAGES and v}
    if DEFAULT_LANGUAGE not in cleaned:
        raise ValueError("English text is required")
    return cleaned
