"""
データモデル（スキーマ定義）
"""

from datetime import datetime
from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from word_weaver.config import BLANK_MARKER


class Round(BaseModel):
    """1問分の穴埋め問題（文の骨組みと単語群）のデータモデル"""

    model_config = ConfigDict(frozen=True)

    skeleton_text: str  # 空欄マーカーを含む文の骨組み
    word_cloud: Tuple[str, ...]  # 選択可能な単語（小文字、表示順を保持）
    blank_count: int  # 空欄の数

    @field_validator("word_cloud", mode="before")
    @classmethod
    def _normalize_word_cloud(cls, value: object) -> Tuple[str, ...]:
        """単語群を小文字化し、重複を除いて順序を保ったタプルにする"""
        if isinstance(value, str):
            raise ValueError("word_cloudは単語のリストで指定してください")
        words: list[str] = []
        for word in value:  # type: ignore[union-attr]
            normalized = str(word).strip().lower()
            if normalized and normalized not in words:
                words.append(normalized)
        return tuple(words)

    @model_validator(mode="after")
    def _check_blank_count(self) -> "Round":
        """空欄の数が骨組み中のマーカー数と一致することを確認"""
        marker_count = self.skeleton_text.count(BLANK_MARKER)
        if marker_count < 1:
            raise ValueError(f"骨組みに空欄マーカー({BLANK_MARKER})がありません: {self.skeleton_text!r}")
        if self.blank_count != marker_count:
            raise ValueError(
                f"blank_count({self.blank_count})が空欄マーカーの数({marker_count})と一致しません"
            )
        return self

    @property
    def vocabulary(self) -> frozenset[str]:
        """照合用の単語集合（case-fold済み）"""
        return frozenset(word.casefold() for word in self.word_cloud)


class TranscriptSnapshot(BaseModel):
    """音声認識で得られた最新の書き起こし"""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    is_final: bool = False

    @property
    def is_empty(self) -> bool:
        """何も聞き取れていない場合True"""
        return not self.text.strip()


class ExtractionResult(BaseModel):
    """発話文から空欄に当てはまる単語を抽出した結果"""

    model_config = ConfigDict(frozen=True)

    extracted_words: Tuple[str, ...] = ()
    matched: bool = False

    @model_validator(mode="after")
    def _no_words_without_match(self) -> "ExtractionResult":
        if not self.matched and self.extracted_words:
            raise ValueError("一致しなかった抽出結果に単語を含めることはできません")
        return self

    @classmethod
    def no_match(cls) -> "ExtractionResult":
        """一致なしの結果を生成"""
        return cls(extracted_words=(), matched=False)


class ValidationResult(BaseModel):
    """抽出単語を単語群と照合した結果"""

    model_config = ConfigDict(frozen=True)

    accepted: bool = False
    invalid_words: Tuple[str, ...] = ()


class Classification(str, Enum):
    """評価AIの返答の分類"""

    CORRECT = "correct"
    INCORRECT = "incorrect"
    TRANSPORT_ERROR = "transport_error"


class EvaluationOutcome(BaseModel):
    """評価AIによる判定結果のデータモデル"""

    model_config = ConfigDict(frozen=True)

    raw_text: str = ""  # 評価AIの返答（そのまま）
    classification: Classification
    error_detail: str | None = None  # 通信エラー時の詳細
    timestamp: datetime = Field(default_factory=datetime.now)  # 評価日時

    @property
    def feedback(self) -> str:
        """画面に表示するフィードバック文"""
        if self.classification is Classification.TRANSPORT_ERROR:
            return "Sorry, I couldn't check your answer right now. Please try again."
        return self.raw_text


class RoundState(str, Enum):
    """ラウンドの状態"""

    IDLE = "idle"
    LISTENING = "listening"
    EVALUATING = "evaluating"
    FEEDBACK = "feedback"
    ADVANCING = "advancing"
    COMPLETE = "complete"


class ScoreState(BaseModel):
    """ラウンドをまたいだ得点"""

    correct_count: int = 0  # 正解したラウンド数
    best_score: int = 0  # これまでの最高得点


class GameSummary(BaseModel):
    """ゲーム終了時の結果"""

    score: int
    total_rounds: int
    best_score: int
    new_record: bool = False
