"""
Word Weaverゲーム画面のGUIコンポーネント
"""
import logging

import flet as ft

from word_weaver.config import BLANK_MARKER
from word_weaver.models.round_bank import DEFAULT_ROUNDS
from word_weaver.models.schemas import Classification, RoundState
from word_weaver.services.api_check_service import APICheckService
from word_weaver.services.errors import CaptureUnavailable
from word_weaver.services.feedback_client import FeedbackClient
from word_weaver.services.round_state_machine import RoundStateMachine
from word_weaver.services.score_tracker import ScoreTracker
from word_weaver.services.storage_service import HighScoreStorage
from word_weaver.services.transcript_capture import TranscriptCapture

logger = logging.getLogger(__name__)

# 正解後、次の問題に進むまでの待ち時間（秒）
ADVANCE_DELAY_SECONDS = 2.0


class WordWeaverWindow:
    """Word Weaverゲーム画面のウィンドウクラス"""

    def __init__(
        self,
        page: ft.Page,
        state_machine: RoundStateMachine | None = None,
        api_check_service: APICheckService | None = None,
    ) -> None:
        """
        初期化処理

        Args:
            page: Fletのページオブジェクト
            state_machine: ラウンド進行（指定しない場合は既定の問題・サービスで作成）
            api_check_service: API設定チェックサービス
        """
        self.page = page
        self.api_check_service = api_check_service or APICheckService()
        self.init_error: str | None = None
        self.state_machine: RoundStateMachine | None = state_machine
        if self.state_machine is None:
            try:
                self.state_machine = RoundStateMachine(
                    DEFAULT_ROUNDS,
                    capture=TranscriptCapture(),
                    feedback_client=FeedbackClient(),
                    score_tracker=ScoreTracker(storage=HighScoreStorage()),
                    advance_delay=ADVANCE_DELAY_SECONDS,
                )
            except ValueError as e:
                # APIキー未設定など
                self.init_error = str(e)
                logger.error("ゲームを初期化できませんでした: %s", e)
        if self.state_machine is not None:
            self.state_machine.on_change = self.refresh

        # UIコンポーネント
        self.progress_text = ft.Text("", size=14, color=ft.Colors.BLUE_GREY_700)
        self.score_text = ft.Text("", size=14, color=ft.Colors.BLUE_GREY_700)
        self.sentence_row = ft.Row([], alignment=ft.MainAxisAlignment.CENTER, wrap=True)
        self.word_cloud_row = ft.Row([], alignment=ft.MainAxisAlignment.CENTER, wrap=True)
        self.transcript_text = ft.Text("", size=16, italic=True, color=ft.Colors.BLUE_GREY_600)
        self.feedback_text = ft.Text("", size=18, weight=ft.FontWeight.BOLD)
        self.status_text = ft.Text("", size=14, color=ft.Colors.BLUE_GREY_600)
        self.start_button = ft.ElevatedButton("Start Speaking", on_click=self._on_start_clicked, width=200)
        self.stop_button = ft.ElevatedButton("Stop", on_click=self._on_stop_clicked, width=200)
        self.restart_button = ft.ElevatedButton("Play Again", on_click=self._on_restart_clicked, width=200)
        self.api_status_texts: dict[str, ft.Text] = {}

    def build(self) -> None:
        """ウィジェットの構築"""
        title = ft.Text(
            "Word Weaver",
            size=32,
            weight=ft.FontWeight.BOLD,
            text_align=ft.TextAlign.CENTER,
            color=ft.Colors.BLUE_700,
        )

        self.page.add(
            ft.Container(
                content=ft.Column(
                    [
                        title,
                        ft.Row([self.progress_text, self.score_text], alignment=ft.MainAxisAlignment.SPACE_BETWEEN),
                        ft.Container(height=20),
                        ft.Text("Complete the Sentence:", size=20, weight=ft.FontWeight.W_600),
                        self.sentence_row,
                        ft.Text("Word Cloud:", size=16, weight=ft.FontWeight.W_600),
                        self.word_cloud_row,
                        ft.Container(height=20),
                        ft.Row(
                            [self.start_button, self.stop_button, self.restart_button],
                            alignment=ft.MainAxisAlignment.CENTER,
                        ),
                        self.status_text,
                        self.transcript_text,
                        self.feedback_text,
                        ft.Container(height=20),
                        self._create_api_section(),
                    ],
                    horizontal_alignment=ft.CrossAxisAlignment.CENTER,
                    spacing=12,
                    scroll=ft.ScrollMode.AUTO,
                ),
                padding=40,
                expand=True,
            )
        )
        self._check_apis()
        self.refresh()

    def _create_api_section(self) -> ft.Container:
        """API設定状態セクションの作成"""
        rows: list[ft.Control] = [ft.Text("API Status", size=14, weight=ft.FontWeight.BOLD)]
        for name in ("Gemini API", "Azure Speech Service API"):
            status = ft.Text("確認中...", size=12)
            self.api_status_texts[name] = status
            rows.append(ft.Row([ft.Text(name, size=12, width=200), status]))
        return ft.Container(content=ft.Column(rows, spacing=4), padding=10)

    def _check_apis(self) -> None:
        """API設定状態を確認して表示"""
        for result in self.api_check_service.check_all_apis():
            text = self.api_status_texts.get(result["name"])
            if text is None:
                continue
            text.value = f"{result['status']} - {result['message']}"
            text.color = ft.Colors.GREEN_700 if result["status"] == "利用可能" else ft.Colors.RED_700

    def _render_sentence(self) -> list[ft.Control]:
        """空欄を埋めた文を表示用のコントロールに変換"""
        machine = self.state_machine
        assert machine is not None
        segments = machine.current_round.skeleton_text.split(BLANK_MARKER)
        controls: list[ft.Control] = []
        for index, segment in enumerate(segments):
            if segment.strip():
                controls.append(ft.Text(segment.strip(), size=24))
            if index < len(segments) - 1:
                word = machine.filled_blanks[index] if index < len(machine.filled_blanks) else ""
                controls.append(
                    ft.Container(
                        content=ft.Text(word or BLANK_MARKER, size=24, color=ft.Colors.WHITE if word else ft.Colors.BLACK),
                        bgcolor=ft.Colors.GREEN_500 if word else ft.Colors.GREY_300,
                        border_radius=6,
                        padding=ft.padding.symmetric(horizontal=10, vertical=4),
                    )
                )
        return controls

    def _render_word_cloud(self) -> list[ft.Control]:
        """単語群を表示用のコントロールに変換"""
        machine = self.state_machine
        assert machine is not None
        return [
            ft.Container(
                content=ft.Text(word, size=18, color=ft.Colors.BLUE_700),
                bgcolor=ft.Colors.BLUE_50,
                border=ft.border.all(1, ft.Colors.BLUE_200),
                border_radius=20,
                padding=ft.padding.symmetric(horizontal=16, vertical=8),
            )
            for word in machine.current_round.word_cloud
        ]

    def refresh(self, _machine: RoundStateMachine | None = None) -> None:
        """ラウンドの状態を画面に反映"""
        machine = self.state_machine
        if machine is None:
            self.status_text.value = f"ゲームを開始できません: {self.init_error}"
            self.start_button.disabled = True
            self.stop_button.disabled = True
            self.restart_button.visible = False
            self.page.update()
            return

        state = machine.state
        if state is RoundState.COMPLETE and machine.summary is not None:
            summary = machine.summary
            self.progress_text.value = "Congratulations!"
            self.status_text.value = "You've completed all the Word Weaver challenges!"
            record = " (New record!)" if summary.new_record else ""
            self.score_text.value = f"Your score: {summary.score}/{summary.total_rounds}{record}"
        else:
            self.progress_text.value = f"Question {machine.round_index + 1} of {machine.total_rounds}"
            self.score_text.value = f"Score: {machine.score}  Best: {machine.score_tracker.best_score}"
            self.status_text.value = {
                RoundState.IDLE: "Press Start and say the whole sentence.",
                RoundState.LISTENING: "Listening...",
                RoundState.EVALUATING: "Checking your answer...",
                RoundState.FEEDBACK: "",
                RoundState.ADVANCING: "Great job! Moving to the next sentence...",
            }.get(state, "")
            if machine.last_error is not None:
                self.status_text.value = "I couldn't hear you clearly. Please try again."

        self.sentence_row.controls = self._render_sentence()
        self.word_cloud_row.controls = self._render_word_cloud()
        self.transcript_text.value = f"You said: \"{machine.last_transcript}\"" if machine.last_transcript else ""
        self.feedback_text.value = machine.last_feedback
        classification = machine.last_classification
        self.feedback_text.color = (
            ft.Colors.GREEN_700 if classification is Classification.CORRECT else ft.Colors.ORANGE_800
        )

        self.start_button.disabled = state is not RoundState.IDLE
        self.stop_button.disabled = state is not RoundState.LISTENING
        self.restart_button.visible = state is RoundState.COMPLETE
        self.page.update()

    async def _on_start_clicked(self, e: ft.ControlEvent) -> None:
        """開始ボタンがクリックされたときの処理"""
        if self.state_machine is None:
            return
        try:
            await self.state_machine.start_listening_async()
        except CaptureUnavailable as err:
            logger.error("%s", err)
            self.status_text.value = f"音声入力を利用できません: {err}"
            self.start_button.disabled = True
            self.page.update()

    async def _on_stop_clicked(self, e: ft.ControlEvent) -> None:
        """停止ボタンがクリックされたときの処理"""
        if self.state_machine is None:
            return
        await self.state_machine.stop_listening()

    async def _on_restart_clicked(self, e: ft.ControlEvent) -> None:
        """もう一度遊ぶボタンがクリックされたときの処理"""
        if self.state_machine is None:
            return
        self.state_machine.restart()
