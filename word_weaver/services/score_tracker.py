"""
得点管理サービス
"""
import logging

from word_weaver.models.schemas import GameSummary, ScoreState
from word_weaver.services.storage_service import HighScoreStorage

logger = logging.getLogger(__name__)


class ScoreTracker:
    """正解したラウンド数を数えるクラス（減ることはない）"""

    def __init__(self, storage: HighScoreStorage | None = None, game_id: str = "word_weaver") -> None:
        """
        初期化処理

        Args:
            storage: ハイスコアの保存先（指定しない場合は保存しない）
            game_id: ハイスコア保存時のゲームID
        """
        self.storage = storage
        self.game_id = game_id
        self._correct_count: int = 0
        self._best_score: int = storage.load_high_score(game_id) if storage else 0

    @property
    def correct_count(self) -> int:
        return self._correct_count

    @property
    def best_score(self) -> int:
        return self._best_score

    @property
    def state(self) -> ScoreState:
        return ScoreState(correct_count=self._correct_count, best_score=self._best_score)

    def increment(self) -> int:
        """
        得点を1加算

        Returns:
            加算後の得点
        """
        self._correct_count += 1
        logger.info("得点: %d", self._correct_count)
        return self._correct_count

    def finish(self, total_rounds: int) -> GameSummary:
        """
        ゲーム終了時の結果を作成し、最高得点を更新した場合は保存する

        Args:
            total_rounds: 出題したラウンド数

        Returns:
            ゲーム結果
        """
        new_record = self._correct_count > self._best_score
        if new_record:
            self._best_score = self._correct_count
            if self.storage:
                self.storage.save_high_score(self.game_id, self._best_score)
        return GameSummary(
            score=self._correct_count,
            total_rounds=total_rounds,
            best_score=self._best_score,
            new_record=new_record,
        )
