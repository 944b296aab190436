"""
テスト共通のフィクスチャ
"""
from typing import List

import pytest

from tests.helpers import FakeBackendFactory
from word_weaver.models.round_bank import load_rounds
from word_weaver.models.schemas import Round
from word_weaver.services.transcript_capture import TranscriptCapture


@pytest.fixture
def backend_factory() -> FakeBackendFactory:
    """偽の音声認識エンジンのファクトリー"""
    return FakeBackendFactory()


@pytest.fixture
def capture(backend_factory: FakeBackendFactory) -> TranscriptCapture:
    """偽の音声認識エンジンを使うTranscriptCapture"""
    return TranscriptCapture(backend_factory=backend_factory)


@pytest.fixture
def weather_round() -> Round:
    """テスト用のラウンド"""
    return Round(
        skeleton_text="The ___ is very ___ today.",
        word_cloud=["weather", "sunny", "cat", "cloudy", "happy"],
        blank_count=2,
    )


@pytest.fixture
def two_rounds() -> List[Round]:
    """テスト用の2問"""
    return load_rounds(
        [
            {
                "skeleton_text": "The ___ is very ___ today.",
                "word_cloud": ["weather", "sunny", "cat", "cloudy", "happy"],
                "blank_count": 2,
            },
            {
                "skeleton_text": "I want to ___ how to ___ Spanish.",
                "word_cloud": ["learn", "speak", "study", "write", "read"],
                "blank_count": 2,
            },
        ]
    )
