"""
Word Weaver - 音声で穴埋め文を完成させる英語学習ゲーム
メインエントリーポイント
"""
import sys
from pathlib import Path

import flet as ft
from dotenv import load_dotenv

from word_weaver.config import APP_DATA_DIR, setup_logging
from word_weaver.gui.word_weaver_window import WordWeaverWindow

# .envファイルの読み込み（実行ファイルのディレクトリまたはカレントディレクトリから）
if getattr(sys, 'frozen', False):
    # PyInstallerでビルドされた場合
    application_path = Path(sys.executable).parent
else:
    # 開発環境の場合
    application_path = Path(__file__).parent

env_path = application_path / ".env"
if env_path.exists():
    load_dotenv(env_path)
else:
    load_dotenv()


class App:
    """アプリケーションのメインクラス"""

    def __init__(self, page: ft.Page) -> None:
        """
        初期化処理

        Args:
            page: Fletのページオブジェクト
        """
        self.page = page
        self.page.title = "Word Weaver"
        self.page.window.min_width = 900
        self.page.window.min_height = 700
        self.page.theme_mode = ft.ThemeMode.LIGHT
        self.page.bgcolor = ft.Colors.WHITE

        # アプリケーションデータディレクトリの作成
        APP_DATA_DIR.mkdir(parents=True, exist_ok=True)

        self.show_game()

    def show_game(self) -> None:
        """ゲーム画面を表示"""
        self.page.clean()
        game_window = WordWeaverWindow(self.page)
        game_window.build()


def main(page: ft.Page) -> None:
    """アプリケーションの起動"""
    App(page)


if __name__ == "__main__":
    setup_logging()
    ft.app(target=main)
