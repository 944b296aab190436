"""
Word Weaverの出題データ
"""
from typing import Any, Dict, List

from word_weaver.models.schemas import Round

# 文の骨組みと単語群（出題順）
ROUND_DATA: List[Dict[str, Any]] = [
    {
        "skeleton_text": "The ___ is very ___ today.",
        "word_cloud": ["weather", "sunny", "cat", "cloudy", "happy"],
        "blank_count": 2,
    },
    {
        "skeleton_text": "I like to ___ ___ in the morning.",
        "word_cloud": ["coffee", "drink", "read", "book", "run"],
        "blank_count": 2,
    },
    {
        "skeleton_text": "She ___ a beautiful ___ for her birthday.",
        "word_cloud": ["got", "present", "car", "flower", "received"],
        "blank_count": 2,
    },
    {
        "skeleton_text": "We are going to ___ a movie ___ night.",
        "word_cloud": ["watch", "tonight", "see", "theater", "cinema"],
        "blank_count": 2,
    },
    {
        "skeleton_text": "My ___ is always ___ in the morning.",
        "word_cloud": ["dog", "hungry", "happy", "cat", "thirsty"],
        "blank_count": 2,
    },
    {
        "skeleton_text": "They ___ to the park ___ Sunday.",
        "word_cloud": ["go", "on", "walk", "every", "went"],
        "blank_count": 2,
    },
    {
        "skeleton_text": "He is ___ a new ___ for school.",
        "word_cloud": ["buying", "book", "getting", "pen", "backpack"],
        "blank_count": 2,
    },
    {
        "skeleton_text": "The ___ is ___ very slowly.",
        "word_cloud": ["car", "moving", "turtle", "walking", "driving"],
        "blank_count": 2,
    },
    {
        "skeleton_text": "She ___ her keys ___ the table.",
        "word_cloud": ["put", "on", "placed", "under", "forgot"],
        "blank_count": 2,
    },
    {
        "skeleton_text": "I want to ___ how to ___ Spanish.",
        "word_cloud": ["learn", "speak", "study", "write", "read"],
        "blank_count": 2,
    },
]


def load_rounds(data: List[Dict[str, Any]] | None = None) -> List[Round]:
    """
    出題データからRoundのリストを作成

    Args:
        data: 出題データ（指定しない場合は組み込みのROUND_DATA）

    Returns:
        Roundオブジェクトのリスト（出題順）
    """
    source = ROUND_DATA if data is None else data
    return [Round(**item) for item in source]


DEFAULT_ROUNDS: List[Round] = load_rounds()
