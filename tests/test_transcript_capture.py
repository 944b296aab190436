"""
音声認識サービスのテスト
"""
import os
from unittest.mock import Mock, patch

import pytest

from word_weaver.services.errors import CaptureAborted, CaptureUnavailable
from word_weaver.services.transcript_capture import AzureSpeechBackend, TranscriptCapture, TranscriptHolder


class TestTranscriptHolder:
    """TranscriptHolderのテストクラス"""

    def test_latest_value_wins(self):
        """後から書き込んだ値で上書きされる（結合しない）"""
        holder = TranscriptHolder()
        holder.write("the weather", False)
        holder.write("the weather is very sunny", True)

        snapshot = holder.peek()

        assert snapshot.text == "the weather is very sunny"
        assert snapshot.is_final is True

    def test_take_clears(self):
        """読み出すと空になる"""
        holder = TranscriptHolder()
        holder.write("hello", True)

        assert holder.take().text == "hello"
        assert holder.take().is_empty is True


class TestTranscriptCapture:
    """TranscriptCaptureのテストクラス"""

    def test_start_and_stop(self, capture, backend_factory):
        """開始から停止までで最新の書き起こしを返す"""
        assert capture.start() is True
        backend = backend_factory.latest
        assert backend.started is True

        backend.say("The weather", is_final=False)
        backend.say("The weather is very sunny today.")
        snapshot = capture.stop()

        assert backend.stopped is True
        assert snapshot.text == "the weather is very sunny today."
        assert capture.is_active is False

    def test_start_twice_is_noop(self, capture, backend_factory):
        """セッション中の2回目の開始は無視される"""
        assert capture.start() is True
        assert capture.start() is False
        assert len(backend_factory.backends) == 1

    def test_stop_without_speech(self, capture):
        """何も聞き取れていない場合は空の書き起こし"""
        capture.start()

        assert capture.stop().is_empty is True

    def test_stop_when_inactive(self, capture):
        """セッション外で停止しても空の書き起こし"""
        assert capture.stop().is_empty is True

    def test_transcript_returned_once(self, capture, backend_factory):
        """同じ書き起こしが2回返ることはない"""
        capture.start()
        backend_factory.latest.say("hello there")

        assert capture.stop().text == "hello there"
        assert capture.stop().is_empty is True

    def test_stale_events_ignored(self, capture, backend_factory):
        """前のセッションのイベントは新しいセッションに影響しない"""
        capture.start()
        old_backend = backend_factory.latest
        capture.stop()

        capture.start()
        old_backend.say("late text from old session")
        backend_factory.latest.say("new text")

        assert capture.stop().text == "new text"

    def test_transcript_callback(self, capture, backend_factory):
        """書き起こし更新時のコールバック"""
        on_transcript = Mock()
        capture.start(on_transcript=on_transcript)

        backend_factory.latest.say("Hello", is_final=False)

        on_transcript.assert_called_once_with("hello", False)
        assert capture.latest.text == "hello"

    def test_session_ended_callback(self, capture, backend_factory):
        """端末側の自動終了を通知する"""
        on_session_ended = Mock()
        capture.start(on_session_ended=on_session_ended)

        backend_factory.latest.on_session_ended()

        on_session_ended.assert_called_once_with()

    def test_session_ended_after_stop_ignored(self, capture, backend_factory):
        """停止後の終了通知は無視される"""
        on_session_ended = Mock()
        capture.start(on_session_ended=on_session_ended)
        backend = backend_factory.latest
        capture.stop()

        backend.on_session_ended()

        on_session_ended.assert_not_called()

    def test_error_aborts_session(self, capture, backend_factory):
        """エラー終了したセッションの書き起こしは返さない"""
        on_error = Mock()
        capture.start(on_error=on_error)
        backend = backend_factory.latest
        backend.say("the weather is")

        backend.on_error("ConnectionFailure", "network down")

        on_error.assert_called_once()
        error = on_error.call_args[0][0]
        assert isinstance(error, CaptureAborted)
        assert error.code == "ConnectionFailure"
        assert error.details == "network down"
        assert capture.is_active is False
        assert capture.stop().is_empty is True

    def test_backend_start_failure(self, backend_factory):
        """エンジンの開始に失敗した場合はCaptureUnavailable"""

        def failing_factory(*args):
            backend = backend_factory(*args)
            backend.start = Mock(side_effect=CaptureUnavailable("no microphone"))
            return backend

        capture = TranscriptCapture(backend_factory=failing_factory)

        with pytest.raises(CaptureUnavailable):
            capture.start()
        assert capture.is_active is False

    def test_backend_stop_failure_still_returns(self, capture, backend_factory):
        """エンジンの停止に失敗しても書き起こしを返す"""
        capture.start()
        backend = backend_factory.latest
        backend.say("hello")
        backend.stop = Mock(side_effect=RuntimeError("device lost"))

        assert capture.stop().text == "hello"
        assert capture.is_active is False


class TestAzureSpeechBackend:
    """AzureSpeechBackendのテストクラス"""

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_credentials(self):
        """キー・リージョンが未設定の場合はCaptureUnavailable"""
        with pytest.raises(CaptureUnavailable):
            AzureSpeechBackend(Mock(), Mock(), Mock())

    @patch.dict(os.environ, {"AZURE_SPEECH_KEY": "test_key", "AZURE_SPEECH_REGION": "japaneast"})
    @patch("word_weaver.services.transcript_capture.speechsdk")
    def test_cumulative_transcript(self, mock_speechsdk):
        """確定したフレーズと認識途中のテキストを結合して通知する"""
        recognizer = Mock()
        mock_speechsdk.SpeechRecognizer.return_value = recognizer
        on_transcript = Mock()

        backend = AzureSpeechBackend(on_transcript, Mock(), Mock())
        backend.start()

        recognized = Mock()
        recognized.result.reason = mock_speechsdk.ResultReason.RecognizedSpeech
        recognized.result.text = "The weather is"
        backend._handle_recognized(recognized)

        recognizing = Mock()
        recognizing.result.text = "very sunny"
        backend._handle_recognizing(recognizing)

        assert on_transcript.call_args_list[0][0] == ("The weather is", True)
        assert on_transcript.call_args_list[1][0] == ("The weather is very sunny", False)
        recognizer.start_continuous_recognition_async.assert_called_once()

    @patch.dict(os.environ, {"AZURE_SPEECH_KEY": "test_key", "AZURE_SPEECH_REGION": "japaneast"})
    @patch("word_weaver.services.transcript_capture.speechsdk")
    def test_canceled_with_error(self, mock_speechsdk):
        """エラーによる中断はエラーコールバックに通知する"""
        mock_speechsdk.SpeechRecognizer.return_value = Mock()
        on_error = Mock()
        on_session_ended = Mock()
        backend = AzureSpeechBackend(Mock(), on_session_ended, on_error)

        evt = Mock()
        evt.cancellation_details.reason = mock_speechsdk.CancellationReason.Error
        evt.cancellation_details.error_code = "AuthenticationFailure"
        evt.cancellation_details.error_details = "invalid key"
        backend._handle_canceled(evt)

        on_error.assert_called_once_with("AuthenticationFailure", "invalid key")
        on_session_ended.assert_not_called()

    @patch.dict(os.environ, {"AZURE_SPEECH_KEY": "test_key", "AZURE_SPEECH_REGION": "japaneast"})
    @patch("word_weaver.services.transcript_capture.speechsdk")
    def test_session_stopped_after_stop_request(self, mock_speechsdk):
        """停止要求後のセッション終了は通知しない"""
        mock_speechsdk.SpeechRecognizer.return_value = Mock()
        on_session_ended = Mock()
        backend = AzureSpeechBackend(Mock(), on_session_ended, Mock())

        backend.stop()
        backend._handle_session_stopped(Mock())

        on_session_ended.assert_not_called()
