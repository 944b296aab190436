"""
単語照合サービス
"""
import logging
from typing import Iterable

from word_weaver.models.schemas import ExtractionResult, ValidationResult

logger = logging.getLogger(__name__)


def validate_words(extraction: ExtractionResult, word_cloud: Iterable[str]) -> ValidationResult:
    """
    抽出した単語がすべて単語群に含まれているか確認

    大文字・小文字は区別しない。1語でも単語群にない場合は抽出結果全体を不採用とする。
    この判定はローカルでの簡易チェックであり、ラウンドを進める根拠にはならない

    Args:
        extraction: 骨組み照合の抽出結果
        word_cloud: そのラウンドの単語群

    Returns:
        照合結果
    """
    if not extraction.matched:
        return ValidationResult(accepted=False)

    vocabulary = {word.casefold() for word in word_cloud}
    invalid_words = tuple(
        word for word in extraction.extracted_words if word.casefold() not in vocabulary
    )
    if invalid_words:
        logger.debug("単語群にない単語: %s", invalid_words)
    return ValidationResult(accepted=not invalid_words, invalid_words=invalid_words)
