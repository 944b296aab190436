"""
ラウンド進行サービス
音声認識・骨組み照合・単語照合・評価AI・得点管理を組み合わせて、1問ずつゲームを進める
"""
import asyncio
import logging
from typing import Callable, List, Sequence

from word_weaver.models.schemas import (
    Classification,
    EvaluationOutcome,
    ExtractionResult,
    GameSummary,
    Round,
    RoundState,
    ValidationResult,
)
from word_weaver.services.errors import CaptureAborted, WordWeaverError
from word_weaver.services.feedback_client import FeedbackClient
from word_weaver.services.score_tracker import ScoreTracker
from word_weaver.services.skeleton_compiler import compile_skeleton, fill_skeleton
from word_weaver.services.transcript_capture import TranscriptCapture
from word_weaver.services.word_validator import validate_words

logger = logging.getLogger(__name__)


class RoundStateMachine:
    """
    ラウンドの状態を管理するクラス

    状態は IDLE → LISTENING → EVALUATING → FEEDBACK → ADVANCING と進み、
    次のラウンドのIDLEに戻るか、最後のラウンドの後はCOMPLETEになる。
    評価AIの応答待ちが唯一の待機箇所で、評価中の停止要求は無視される
    """

    def __init__(
        self,
        rounds: Sequence[Round],
        capture: TranscriptCapture,
        feedback_client: FeedbackClient,
        score_tracker: ScoreTracker | None = None,
        on_change: Callable[["RoundStateMachine"], None] | None = None,
        advance_delay: float = 0.0,
    ) -> None:
        """
        初期化処理

        Args:
            rounds: 出題するラウンド（出題順）
            capture: 音声認識サービス
            feedback_client: 評価AIサービス
            score_tracker: 得点管理（指定しない場合は新規作成）
            on_change: 状態が変わるたびに呼ばれるコールバック（画面更新用）
            advance_delay: 正解後、次のラウンドに進むまでの待ち時間（秒）
        """
        if not rounds:
            raise ValueError("ラウンドが1つもありません")
        self.rounds: List[Round] = list(rounds)
        self.capture = capture
        self.feedback_client = feedback_client
        self.score_tracker = score_tracker or ScoreTracker()
        self.on_change = on_change
        self.advance_delay = advance_delay

        self.state: RoundState = RoundState.IDLE
        self.round_index: int = 0
        self.filled_blanks: List[str] = []
        self.last_transcript: str = ""
        self.last_extraction: ExtractionResult | None = None
        self.last_validation: ValidationResult | None = None
        self.last_outcome: EvaluationOutcome | None = None
        self.last_error: WordWeaverError | None = None
        self.summary: GameSummary | None = None

        self._game_id: int = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Task] = set()
        # 音声認識の起動・停止を別スレッドで待っている間True
        self._capture_busy: bool = False

    # ------------------------------------------------------------------
    # 画面表示用のプロパティ
    # ------------------------------------------------------------------

    @property
    def current_round(self) -> Round:
        return self.rounds[self.round_index]

    @property
    def total_rounds(self) -> int:
        return len(self.rounds)

    @property
    def score(self) -> int:
        return self.score_tracker.correct_count

    @property
    def last_classification(self) -> Classification | None:
        return self.last_outcome.classification if self.last_outcome else None

    @property
    def last_feedback(self) -> str:
        return self.last_outcome.feedback if self.last_outcome else ""

    @property
    def sentence_so_far(self) -> str:
        """確定した単語を埋めた現在の文"""
        return fill_skeleton(self.current_round.skeleton_text, self.filled_blanks)

    @property
    def is_round_filled(self) -> bool:
        return len(self.filled_blanks) == self.current_round.blank_count

    # ------------------------------------------------------------------
    # 操作
    # ------------------------------------------------------------------

    def start_listening(self) -> bool:
        """
        音声認識を開始（IDLE → LISTENING）

        音声認識エンジンの起動が終わるまで呼び出し元をブロックする。
        イベントループ上ではstart_listening_asyncを使う

        Returns:
            開始した場合True、IDLE以外の状態で呼ばれた場合False

        Raises:
            CaptureUnavailable: 音声認識が利用できない場合（状態はIDLEのまま）
        """
        if not self._can_start():
            return False
        self._bind_loop()
        if self._loop is None:
            logger.warning("イベントループ外で開始したため、音声認識のコールバックは認識スレッド上で実行されます")
        self._clear_attempt()
        if not self.capture.start(**self._capture_callbacks()):
            return False
        self._set_state(RoundState.LISTENING)
        return True

    async def start_listening_async(self) -> bool:
        """
        音声認識を別スレッドで開始（IDLE → LISTENING）

        起動中もイベントループは止まらない。起動中の開始・停止要求は無視される

        Returns:
            開始した場合True、開始しなかった場合False

        Raises:
            CaptureUnavailable: 音声認識が利用できない場合（状態はIDLEのまま）
        """
        if not self._can_start():
            return False
        self._bind_loop()
        self._clear_attempt()
        game_id = self._game_id

        self._capture_busy = True
        try:
            started = await asyncio.to_thread(self.capture.start, **self._capture_callbacks())
        finally:
            self._capture_busy = False
        if not started:
            return False

        if game_id != self._game_id or self.state is not RoundState.IDLE:
            logger.info("起動中にゲームが再開されたため音声認識を止めます")
            await asyncio.to_thread(self.capture.stop)
            return False
        self._set_state(RoundState.LISTENING)
        return True

    async def stop_listening(self) -> EvaluationOutcome | None:
        """
        音声認識を終了して回答を評価（LISTENING → EVALUATING → FEEDBACK → IDLE/ADVANCING）

        音声認識の停止は別スレッドで待つ。何も聞き取れていない場合は評価せずにIDLEに戻る。
        停止中・評価中に呼ばれた場合は何もしない

        Returns:
            評価結果（評価しなかった場合はNone）
        """
        if self.state is not RoundState.LISTENING or self._capture_busy:
            if self.state is RoundState.EVALUATING or self._capture_busy:
                logger.debug("停止中または評価中のため停止要求を無視しました")
            return None

        current = asyncio.current_task()
        if current is not None:
            self._tasks.add(current)
        try:
            return await self._stop_and_evaluate()
        finally:
            if current is not None:
                self._tasks.discard(current)

    async def _stop_and_evaluate(self) -> EvaluationOutcome | None:
        game_id = self._game_id
        self._capture_busy = True
        try:
            snapshot = await asyncio.to_thread(self.capture.stop)
        finally:
            self._capture_busy = False

        if game_id != self._game_id or self.state is not RoundState.LISTENING:
            logger.info("停止中に状態が変わったため評価を行いません")
            return None

        self.last_transcript = snapshot.text
        if snapshot.is_empty:
            logger.info("発話がなかったため評価を行いません")
            self._set_state(RoundState.IDLE)
            return None

        self._set_state(RoundState.EVALUATING)
        round_ = self.current_round

        extraction = compile_skeleton(round_.skeleton_text).extract(snapshot.text)
        validation = validate_words(extraction, round_.word_cloud)
        self.last_extraction = extraction
        self.last_validation = validation
        known_words = list(extraction.extracted_words) if validation.accepted else self.filled_blanks
        current_attempt = fill_skeleton(round_.skeleton_text, known_words)

        try:
            outcome = await self.feedback_client.evaluate(round_, snapshot.text, current_attempt)
        except Exception as e:
            logger.exception("評価中に予期しないエラーが発生しました")
            outcome = EvaluationOutcome(
                classification=Classification.TRANSPORT_ERROR, error_detail=str(e)
            )

        if game_id != self._game_id:
            logger.info("評価中にゲームが再開されたため結果を破棄しました")
            return outcome

        await self._apply_outcome(outcome, extraction, validation)
        return outcome

    def restart(self) -> None:
        """同じ問題で最初から新しいゲームを始める"""
        if self.capture.is_active:
            self.capture.stop()
        self._game_id += 1
        self.score_tracker = ScoreTracker(
            storage=self.score_tracker.storage, game_id=self.score_tracker.game_id
        )
        self.round_index = 0
        self.summary = None
        self._reset_round()
        self._set_state(RoundState.IDLE)

    async def close(self) -> None:
        """実行中の評価を中断して終了を待ち、音声認識を止めてから評価AIとの接続を閉じる"""
        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if self.capture.is_active:
            await asyncio.to_thread(self.capture.stop)
        await self.feedback_client.aclose()

    # ------------------------------------------------------------------
    # 内部処理
    # ------------------------------------------------------------------

    async def _apply_outcome(
        self,
        outcome: EvaluationOutcome,
        extraction: ExtractionResult,
        validation: ValidationResult,
    ) -> None:
        """評価結果を反映し、ラウンドを進めるか同じラウンドに戻る"""
        self.last_outcome = outcome
        self._set_state(RoundState.FEEDBACK)

        correct = outcome.classification is Classification.CORRECT
        if correct and extraction.matched and validation.accepted:
            blank_count = self.current_round.blank_count
            self.filled_blanks = list(extraction.extracted_words[:blank_count])

        if correct and self.is_round_filled:
            await self._advance()
        else:
            self._set_state(RoundState.IDLE)

    async def _advance(self) -> None:
        """得点を加算して次のラウンドへ進む（最後のラウンドならゲーム終了）"""
        game_id = self._game_id
        self._set_state(RoundState.ADVANCING)
        self.score_tracker.increment()

        if self.advance_delay > 0:
            await asyncio.sleep(self.advance_delay)
        if game_id != self._game_id:
            return

        if self.round_index + 1 < self.total_rounds:
            self.round_index += 1
            self._reset_round()
            logger.info("次のラウンドへ進みます (%d/%d)", self.round_index + 1, self.total_rounds)
            self._set_state(RoundState.IDLE)
        else:
            self.summary = self.score_tracker.finish(self.total_rounds)
            logger.info("ゲーム終了: %d/%d", self.summary.score, self.summary.total_rounds)
            self._set_state(RoundState.COMPLETE)

    def _can_start(self) -> bool:
        if self.state is not RoundState.IDLE or self._capture_busy:
            logger.debug("IDLE以外の状態(%s)では音声認識を開始しません", self.state.value)
            return False
        return True

    def _bind_loop(self) -> None:
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

    def _clear_attempt(self) -> None:
        self.last_error = None
        self.last_outcome = None
        self.last_transcript = ""

    def _capture_callbacks(self) -> dict[str, Callable]:
        return {
            "on_session_ended": lambda: self._dispatch(self._on_capture_ended),
            "on_error": lambda error: self._dispatch(lambda: self._on_capture_aborted(error)),
        }

    def _reset_round(self) -> None:
        self.filled_blanks = []
        self.last_transcript = ""
        self.last_extraction = None
        self.last_validation = None
        self.last_outcome = None
        self.last_error = None

    def _set_state(self, state: RoundState) -> None:
        self.state = state
        if self.on_change:
            self.on_change(self)

    def _dispatch(self, callback: Callable[[], None]) -> None:
        """音声認識スレッドからのコールバックをイベントループ上で実行する"""
        loop = self._loop
        if loop is None or loop.is_closed():
            callback()
            return
        loop.call_soon_threadsafe(callback)

    def _on_capture_ended(self) -> None:
        """端末側で音声認識が終了した場合は停止ボタンと同じ処理を行う"""
        if self.state is not RoundState.LISTENING:
            return
        if self._loop is None:
            logger.warning("イベントループがないため自動終了後の評価を開始できません")
            return
        task = self._loop.create_task(self.stop_listening())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_capture_aborted(self, error: CaptureAborted) -> None:
        """音声認識がエラー終了した場合は評価せずにIDLEへ戻る"""
        if self.state is not RoundState.LISTENING:
            return
        self.last_error = error
        self._set_state(RoundState.IDLE)
