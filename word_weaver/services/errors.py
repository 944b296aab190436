"""
Word Weaverの例外クラス
"""


class WordWeaverError(Exception):
    """Word Weaverで発生するエラーの基底クラス"""


class SkeletonError(WordWeaverError, ValueError):
    """文の骨組みから照合パターンを作成できない場合のエラー"""


class CaptureUnavailable(WordWeaverError):
    """音声認識が利用できない場合のエラー（この端末では再試行しても回復しない）"""


class CaptureAborted(WordWeaverError):
    """音声認識セッションが途中でエラー終了した場合のエラー"""

    def __init__(self, code: str, details: str = "") -> None:
        self.code = code
        self.details = details
        message = f"音声認識が中断されました ({code})"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)


class TransportError(WordWeaverError):
    """評価AIとの通信に失敗した場合のエラー（認証・ネットワーク・タイムアウト・不正な応答）"""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
