"""
ローカルストレージサービス
ユーザー認証不要で、ハイスコアをローカルファイルに保存する
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict

from word_weaver.config import HIGH_SCORE_FILE

logger = logging.getLogger(__name__)


class HighScoreStorage:
    """ゲームごとのハイスコアをJSONファイルに保存・読み込むサービスクラス"""

    def __init__(self, file_path: Path | None = None) -> None:
        """
        初期化処理
        保存先ディレクトリを作成する

        Args:
            file_path: 保存先ファイル（指定しない場合はアプリケーションデータディレクトリ内）
        """
        self.file_path: Path = file_path or HIGH_SCORE_FILE
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

    def _load_all(self) -> Dict[str, Any]:
        """保存済みのハイスコアをすべて読み込む（読めない場合は空）"""
        if not self.file_path.exists():
            return {}
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("ハイスコアの読み込みに失敗しました: %s", e)
            return {}
        return data if isinstance(data, dict) else {}

    def load_high_score(self, game_id: str) -> int:
        """
        ハイスコアを読み込む

        Args:
            game_id: ゲームID

        Returns:
            ハイスコア（未保存・破損時は0）
        """
        value = self._load_all().get(game_id, 0)
        try:
            return max(int(value), 0)
        except (TypeError, ValueError):
            return 0

    def save_high_score(self, game_id: str, score: int) -> bool:
        """
        ハイスコアを保存

        Args:
            game_id: ゲームID
            score: 保存するスコア

        Returns:
            保存成功時True、失敗時False
        """
        data = self._load_all()
        data[game_id] = int(score)
        try:
            with open(self.file_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error("ハイスコアの保存に失敗しました: %s", e)
            return False
        return True
