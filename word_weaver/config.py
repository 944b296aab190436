"""
アプリケーション設定
"""
import logging
import os
import sys
from pathlib import Path


def get_app_data_dir() -> Path:
    """
    アプリケーションのデータディレクトリを取得

    Returns:
        アプリケーションデータディレクトリのパス
    """
    if sys.platform == "win32":
        # Windowsの場合、AppData\Local\WordWeaverを使用
        app_data: str | None = os.getenv("LOCALAPPDATA")
        if app_data:
            app_dir: Path = Path(app_data) / "WordWeaver"
            app_dir.mkdir(exist_ok=True)
            return app_dir
    elif sys.platform == "darwin":
        # macOSの場合、~/Library/Application Support/WordWeaverを使用
        app_support: Path = Path.home() / "Library" / "Application Support" / "WordWeaver"
        app_support.mkdir(parents=True, exist_ok=True)
        return app_support
    # その他のOSまたはフォールバック
    return Path.home() / ".word_weaver"


def get_high_score_file() -> Path:
    """
    ハイスコア保存ファイルのパスを取得

    Returns:
        ハイスコアファイルのパス
    """
    return get_app_data_dir() / "high_scores.json"


def get_log_file() -> Path:
    """
    ログファイルのパスを取得

    Returns:
        ログファイルのパス
    """
    return get_app_data_dir() / "app.log"


# アプリケーションデータディレクトリ
APP_DATA_DIR = get_app_data_dir()

# ハイスコアファイル
HIGH_SCORE_FILE = get_high_score_file()

# ログファイル
LOG_FILE = get_log_file()

# 穴埋めの空欄マーカー
BLANK_MARKER = "___"

# 評価AIの返答がこの文字列で始まる場合のみ正解とみなす
SUCCESS_MARKER = "Correct!"

# 評価AI（Gemini）のデフォルト設定
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_GEMINI_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
)
DEFAULT_EVALUATOR_TIMEOUT_SECONDS = 12.0

# 音声認識のデフォルト言語
DEFAULT_SPEECH_LANGUAGE = "en-US"


def get_gemini_model() -> str:
    """評価に使用するGeminiモデル名を取得"""
    return os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL)


def get_gemini_endpoint() -> str:
    """
    評価AIのエンドポイントURLを取得

    GEMINI_API_ENDPOINTが設定されていればそれを優先し、
    未設定の場合はモデル名からURLを組み立てる

    Returns:
        generateContentエンドポイントのURL
    """
    endpoint: str | None = os.getenv("GEMINI_API_ENDPOINT")
    if endpoint:
        return endpoint
    return DEFAULT_GEMINI_ENDPOINT.format(model=get_gemini_model())


def get_evaluator_timeout() -> float:
    """
    評価AI呼び出しのタイムアウト秒数を取得

    Returns:
        タイムアウト（秒）。不正な値の場合はデフォルト値
    """
    raw: str | None = os.getenv("EVALUATOR_TIMEOUT_SECONDS")
    if not raw:
        return DEFAULT_EVALUATOR_TIMEOUT_SECONDS
    try:
        timeout = float(raw)
    except ValueError:
        return DEFAULT_EVALUATOR_TIMEOUT_SECONDS
    return timeout if timeout > 0 else DEFAULT_EVALUATOR_TIMEOUT_SECONDS


def get_speech_language() -> str:
    """音声認識の言語コードを取得"""
    return os.getenv("SPEECH_LANGUAGE", DEFAULT_SPEECH_LANGUAGE)


def setup_logging(level: str | None = None) -> None:
    """
    ログ出力を設定

    コンソールとアプリケーションデータディレクトリ内のログファイルの両方に出力する

    Args:
        level: ログレベル（指定しない場合はWORD_WEAVER_LOG_LEVEL環境変数、既定はINFO）
    """
    level_name: str = (level or os.getenv("WORD_WEAVER_LOG_LEVEL", "INFO")).upper()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    try:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(LOG_FILE, encoding="utf-8"))
    except OSError as e:
        # ログファイルが作れない環境でもコンソール出力は続ける
        print(f"ログファイルを作成できませんでした: {e}")

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )
