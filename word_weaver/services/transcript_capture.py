"""
音声認識（書き起こし）サービス
Azure Speech Serviceの連続認識セッションを管理し、セッション終了時点の最新の書き起こしを返す
"""
import logging
import os
import threading
from typing import Any, Callable, Protocol

import azure.cognitiveservices.speech as speechsdk

from word_weaver.config import get_speech_language
from word_weaver.models.schemas import TranscriptSnapshot
from word_weaver.services.errors import CaptureAborted, CaptureUnavailable

logger = logging.getLogger(__name__)

TranscriptCallback = Callable[[str, bool], None]
SessionEndedCallback = Callable[[], None]
BackendErrorCallback = Callable[[str, str], None]


class SpeechBackend(Protocol):
    """音声認識エンジンのインターフェース"""

    def start(self) -> None: ...

    def stop(self) -> None: ...


BackendFactory = Callable[[TranscriptCallback, SessionEndedCallback, BackendErrorCallback], SpeechBackend]


class TranscriptHolder:
    """
    最新の書き起こしを保持する入れ物

    認識イベントのたびにコールバックスレッドから同期的に上書きされ、
    セッション終了時に一度だけ読み出される。古い値とは結合しない
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = TranscriptSnapshot()

    def write(self, text: str, is_final: bool) -> None:
        with self._lock:
            self._snapshot = TranscriptSnapshot(text=text, is_final=is_final)

    def peek(self) -> TranscriptSnapshot:
        with self._lock:
            return self._snapshot

    def take(self) -> TranscriptSnapshot:
        """現在の値を返し、中身を空にする"""
        with self._lock:
            snapshot = self._snapshot
            self._snapshot = TranscriptSnapshot()
            return snapshot

    def clear(self) -> None:
        with self._lock:
            self._snapshot = TranscriptSnapshot()


class AzureSpeechBackend:
    """Azure Speech Serviceの連続認識を使用する音声認識エンジン"""

    def __init__(
        self,
        on_transcript: TranscriptCallback,
        on_session_ended: SessionEndedCallback,
        on_error: BackendErrorCallback,
        language: str | None = None,
    ) -> None:
        """
        初期化処理
        環境変数からAzure Speech Serviceのキーとリージョンを取得し、認識器を作成する

        Args:
            on_transcript: 書き起こし更新時のコールバック（セッション開始からの累積テキスト, 確定かどうか）
            on_session_ended: 認識セッションが自動終了したときのコールバック
            on_error: 認識エラー時のコールバック（エラーコード, 詳細）
            language: 認識言語（指定しない場合はSPEECH_LANGUAGE環境変数）

        Raises:
            CaptureUnavailable: キー・リージョンが未設定、または認識器を作成できない場合
        """
        speech_key: str | None = os.getenv("AZURE_SPEECH_KEY")
        speech_region: str | None = os.getenv("AZURE_SPEECH_REGION")
        if not speech_key or not speech_region:
            raise CaptureUnavailable("AZURE_SPEECH_KEYとAZURE_SPEECH_REGION環境変数が設定されていません")

        self._on_transcript = on_transcript
        self._on_session_ended = on_session_ended
        self._on_error = on_error
        self._committed: list[str] = []  # このセッションで確定したフレーズ
        self._stop_requested = False

        try:
            speech_config = speechsdk.SpeechConfig(subscription=speech_key, region=speech_region)
            speech_config.speech_recognition_language = language or get_speech_language()
            audio_config = speechsdk.audio.AudioConfig(use_default_microphone=True)
            self._recognizer = speechsdk.SpeechRecognizer(
                speech_config=speech_config, audio_config=audio_config
            )
        except Exception as e:
            raise CaptureUnavailable(f"音声認識を初期化できませんでした: {e}") from e

        self._recognizer.recognizing.connect(self._handle_recognizing)
        self._recognizer.recognized.connect(self._handle_recognized)
        self._recognizer.session_stopped.connect(self._handle_session_stopped)
        self._recognizer.canceled.connect(self._handle_canceled)

    def start(self) -> None:
        """連続認識を開始"""
        self._committed = []
        self._stop_requested = False
        try:
            self._recognizer.start_continuous_recognition_async().get()
        except Exception as e:
            raise CaptureUnavailable(f"音声認識を開始できませんでした: {e}") from e

    def stop(self) -> None:
        """連続認識を停止（停止完了まで待機する）"""
        self._stop_requested = True
        self._recognizer.stop_continuous_recognition_async().get()

    def _joined(self, partial: str = "") -> str:
        parts = [*self._committed, partial] if partial else list(self._committed)
        return " ".join(part for part in parts if part)

    def _handle_recognizing(self, evt: Any) -> None:
        """認識途中の仮テキスト"""
        self._on_transcript(self._joined(evt.result.text), False)

    def _handle_recognized(self, evt: Any) -> None:
        """フレーズの確定"""
        if evt.result.reason == speechsdk.ResultReason.RecognizedSpeech and evt.result.text:
            self._committed.append(evt.result.text)
            self._on_transcript(self._joined(), True)

    def _handle_session_stopped(self, evt: Any) -> None:
        if not self._stop_requested:
            self._on_session_ended()

    def _handle_canceled(self, evt: Any) -> None:
        details = evt.cancellation_details
        if details.reason == speechsdk.CancellationReason.Error:
            self._on_error(str(details.error_code), details.error_details or "")
        elif not self._stop_requested:
            # 音声ストリームの終端などエラー以外の理由による終了
            self._on_session_ended()


class TranscriptCapture:
    """1回の音声認識セッションを管理するサービスクラス"""

    def __init__(self, backend_factory: BackendFactory | None = None) -> None:
        """
        初期化処理

        Args:
            backend_factory: 音声認識エンジンを作成する関数（指定しない場合はAzure Speech Service）
        """
        self.backend_factory: BackendFactory = backend_factory or AzureSpeechBackend
        self.holder = TranscriptHolder()
        self._lock = threading.Lock()
        self._backend: SpeechBackend | None = None
        self._session_id: int = 0
        self._active: bool = False
        self._stopping: bool = False
        self._on_session_ended: SessionEndedCallback | None = None
        self._on_error: Callable[[CaptureAborted], None] | None = None
        self._on_transcript: TranscriptCallback | None = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def latest(self) -> TranscriptSnapshot:
        """表示用の最新の書き起こし（読み出しても消えない）"""
        return self.holder.peek()

    def start(
        self,
        on_session_ended: SessionEndedCallback | None = None,
        on_error: Callable[[CaptureAborted], None] | None = None,
        on_transcript: TranscriptCallback | None = None,
    ) -> bool:
        """
        音声認識セッションを開始

        Args:
            on_session_ended: 端末側でセッションが自動終了したときのコールバック
            on_error: セッションがエラー終了したときのコールバック
            on_transcript: 書き起こしが更新されたときのコールバック（表示用）

        Returns:
            開始した場合True、既にセッション中の場合False

        Raises:
            CaptureUnavailable: 音声認識が利用できない場合
        """
        with self._lock:
            if self._active:
                return False
            self._session_id += 1
            session_id = self._session_id
            self.holder.clear()
            self._on_session_ended = on_session_ended
            self._on_error = on_error
            self._on_transcript = on_transcript

        backend = self.backend_factory(
            lambda text, is_final: self._handle_transcript(session_id, text, is_final),
            lambda: self._handle_session_ended(session_id),
            lambda code, details: self._handle_error(session_id, code, details),
        )
        backend.start()

        with self._lock:
            self._backend = backend
            self._active = True
            self._stopping = False
        logger.info("音声認識を開始しました (session=%d)", session_id)
        return True

    def stop(self) -> TranscriptSnapshot:
        """
        音声認識セッションを終了し、最新の書き起こしを返す

        書き起こしは一度だけ返され、何も聞き取れていない場合は空のスナップショットを返す

        Returns:
            セッション終了時点の書き起こし
        """
        with self._lock:
            backend = self._backend
            was_active = self._active
            self._stopping = True

        if was_active and backend is not None:
            try:
                backend.stop()
            except Exception as e:
                logger.warning("音声認識の停止中にエラーが発生しました: %s", e)

        with self._lock:
            # 停止後に届いたイベントは破棄する
            self._session_id += 1
            self._backend = None
            self._active = False
            self._stopping = False

        snapshot = self.holder.take()
        logger.info("音声認識を停止しました: %r", snapshot.text)
        return snapshot

    def _is_current(self, session_id: int) -> bool:
        return session_id == self._session_id

    def _handle_transcript(self, session_id: int, text: str, is_final: bool) -> None:
        normalized = text.strip().lower()
        with self._lock:
            if not self._is_current(session_id):
                return
            self.holder.write(normalized, is_final)
            callback = self._on_transcript
        if callback:
            callback(normalized, is_final)

    def _handle_session_ended(self, session_id: int) -> None:
        with self._lock:
            if not self._is_current(session_id) or not self._active or self._stopping:
                return
            callback = self._on_session_ended
        logger.info("音声認識セッションが自動終了しました (session=%d)", session_id)
        if callback:
            callback()

    def _handle_error(self, session_id: int, code: str, details: str) -> None:
        with self._lock:
            if not self._is_current(session_id):
                return
            # エラー終了したセッションの書き起こしは評価に使わない
            self._session_id += 1
            self._backend = None
            self._active = False
            self._stopping = False
            callback = self._on_error
        self.holder.clear()
        error = CaptureAborted(code, details)
        logger.error("%s", error)
        if callback:
            callback(error)
