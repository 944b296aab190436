"""
文の骨組み照合サービス
空欄マーカーを含む文の骨組みから、発話文の空欄部分を抽出する照合器を作成する
"""
import logging
import re
from functools import lru_cache
from typing import Sequence

from word_weaver.config import BLANK_MARKER
from word_weaver.models.schemas import ExtractionResult
from word_weaver.services.errors import SkeletonError

logger = logging.getLogger(__name__)

# 骨組みの固定部分を単語と記号に分割する
_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]")
_WORD_PATTERN = re.compile(r"\w+")

# 空欄1つにつき単語1つを取り出す
_BLANK_CAPTURE = r"\b(\w+)\b"

# 音声認識が文末に付ける句読点は無視する
_TRAILING_PUNCTUATION = r"[.!?,;:]*"


def _literal_pattern(segment: str) -> str:
    """
    骨組みの固定部分を正規表現に変換

    単語はそのまま（エスケープして）一致させ、記号は省略可能とする。
    単語と単語の間には1つ以上の空白が必要

    Args:
        segment: 空欄と空欄の間の固定文字列

    Returns:
        正規表現文字列（固定部分が空の場合は空文字列）
    """
    parts: list[str] = []
    previous_is_word = False
    for token in _TOKEN_PATTERN.findall(segment):
        is_word = bool(_WORD_PATTERN.fullmatch(token))
        if parts:
            parts.append(r"\s+" if is_word and previous_is_word else r"\s*")
        parts.append(re.escape(token) if is_word else re.escape(token) + "?")
        previous_is_word = is_word
    return "".join(parts)


class SkeletonMatcher:
    """1つの骨組みに対応する照合器（作成後は変更されない）"""

    def __init__(self, skeleton_text: str, marker: str = BLANK_MARKER) -> None:
        """
        初期化処理

        Args:
            skeleton_text: 空欄マーカーを含む文の骨組み
            marker: 空欄マーカー

        Raises:
            SkeletonError: 骨組みに空欄が1つもない場合
        """
        segments: list[str] = skeleton_text.split(marker)
        if len(segments) < 2:
            raise SkeletonError(f"骨組みに空欄マーカー({marker})がありません: {skeleton_text!r}")

        pieces: list[str] = []
        for index, segment in enumerate(segments):
            pieces.append(_literal_pattern(segment))
            if index < len(segments) - 1:
                pieces.append(_BLANK_CAPTURE)

        body = r"\s*".join(pieces)
        self._skeleton_text = skeleton_text
        self._blank_count = len(segments) - 1
        self._pattern: re.Pattern[str] = re.compile(
            rf"^\s*{body}\s*{_TRAILING_PUNCTUATION}\s*$", re.IGNORECASE
        )

    @property
    def skeleton_text(self) -> str:
        return self._skeleton_text

    @property
    def blank_count(self) -> int:
        return self._blank_count

    @property
    def pattern(self) -> re.Pattern[str]:
        return self._pattern

    def extract(self, sentence: str) -> ExtractionResult:
        """
        発話文から空欄に入る単語を抽出

        固定部分の単語が1つでも追加・欠落・入れ替わっている場合は一致なしとし、
        部分的な抽出結果は返さない

        Args:
            sentence: 発話文

        Returns:
            抽出結果（一致した場合は空欄の数だけ単語を左から順に含む）
        """
        if not sentence or not sentence.strip():
            return ExtractionResult.no_match()

        match = self._pattern.match(sentence)
        if match is None:
            logger.debug("骨組みに一致しませんでした: skeleton=%r sentence=%r", self._skeleton_text, sentence)
            return ExtractionResult.no_match()

        words = tuple(match.groups())
        logger.debug("抽出した単語: %s", words)
        return ExtractionResult(extracted_words=words, matched=True)


@lru_cache(maxsize=128)
def compile_skeleton(skeleton_text: str, marker: str = BLANK_MARKER) -> SkeletonMatcher:
    """
    骨組みから照合器を作成（同じ骨組みはキャッシュした照合器を返す）

    Args:
        skeleton_text: 空欄マーカーを含む文の骨組み
        marker: 空欄マーカー

    Returns:
        照合器
    """
    return SkeletonMatcher(skeleton_text, marker)


def fill_skeleton(
    skeleton_text: str, words: Sequence[str], marker: str = BLANK_MARKER
) -> str:
    """
    骨組みの空欄に左から順に単語を埋めた文を作成

    Args:
        skeleton_text: 空欄マーカーを含む文の骨組み
        words: 空欄に入れる単語（足りない空欄はマーカーのまま残す）
        marker: 空欄マーカー

    Returns:
        空欄を埋めた文
    """
    segments = skeleton_text.split(marker)
    filled: list[str] = []
    for index, segment in enumerate(segments):
        filled.append(segment)
        if index < len(segments) - 1:
            word = words[index] if index < len(words) else ""
            filled.append(word or marker)
    return "".join(filled)
