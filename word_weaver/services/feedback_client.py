"""
評価AIサービス
Gemini APIに回答を送り、フィードバック文と正誤判定を取得する
"""
import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Sequence, Tuple

import httpx

from word_weaver.config import SUCCESS_MARKER, get_evaluator_timeout, get_gemini_endpoint
from word_weaver.models.schemas import Classification, EvaluationOutcome, Round
from word_weaver.services.errors import TransportError

logger = logging.getLogger(__name__)

# 評価AIへの指示（発話文全体から空欄の単語を取り出して判定させる）
WORD_WEAVER_PROMPT = """You are an AI English tutor for Word Weaver.

IMPORTANT: Evaluate the full sentence that the user has spoken. From the spoken sentence, extract the words that are intended to fill the blanks in the sentence skeleton. Then, verify:
1. Each extracted word exists in the word cloud
2. The words appear in a logical order that completes the sentence meaningfully
3. The grammar and syntax of the completed sentence is correct

Respond in ONE of these formats:
1. "Correct! [completed_sentence]" if all extracted words are in the word cloud and form a logical, grammatically correct sentence.
2. "Oops! The word(s) '[non_matching_words]' are not in the word cloud." if any extracted words are not in the word cloud.
3. "Oops! While those words are available, they don't create a logical sentence. Try a different combination." if the words are in the word cloud but don't form a meaningful sentence.
4. "Oops! I heard '[spoken_sentence]' but couldn't match it to the sentence structure. Please try again." if the spoken sentence structure doesn't match the expected pattern.

Current Game State:
* Question: "{skeleton}"
* Available Words: {word_cloud}
* Spoken Sentence: "{spoken_sentence}"
* Progress So Far: "{current_attempt}"

Extract the words intended for the blanks from the spoken sentence, verify them against the word cloud, and check if they form a logical completion of the sentence. Provide ONE feedback line."""

# 認証失敗を表すHTTPステータス（次の認証方式で再送する）
AUTH_FAILURE_STATUSES = frozenset({401, 403})

# 生成パラメータ（1行の返答だけを受け取る）
GENERATION_CONFIG: Dict[str, Any] = {
    "temperature": 0.7,
    "maxOutputTokens": 200,
    "topK": 1,
    "topP": 0.8,
    "stopSequences": ["\n"],
}


class AuthTransport:
    """APIキーの渡し方（認証方式）の基底クラス"""

    name: str = "base"

    def credentials(self, api_key: str) -> Tuple[Dict[str, str], Dict[str, str]]:
        """
        リクエストに付与するクエリパラメータとヘッダーを作成

        Args:
            api_key: APIキー

        Returns:
            (クエリパラメータ, ヘッダー)
        """
        raise NotImplementedError


class QueryKeyTransport(AuthTransport):
    """APIキーをURLのクエリパラメータで渡す"""

    name = "query-key"

    def credentials(self, api_key: str) -> Tuple[Dict[str, str], Dict[str, str]]:
        return {"key": api_key}, {}


class BearerHeaderTransport(AuthTransport):
    """APIキーをAuthorizationヘッダーで渡す"""

    name = "bearer-header"

    def credentials(self, api_key: str) -> Tuple[Dict[str, str], Dict[str, str]]:
        return {}, {"Authorization": f"Bearer {api_key}"}


def classify_reply(raw_text: str, marker: str = SUCCESS_MARKER) -> Classification:
    """
    評価AIの返答を正誤に分類

    返答が成功マーカーで始まる場合のみ正解とし、それ以外（部分的に正しいという返答も含む）は不正解とする

    Args:
        raw_text: 評価AIの返答
        marker: 成功マーカー

    Returns:
        CORRECTまたはINCORRECT
    """
    if raw_text.strip().startswith(marker):
        return Classification.CORRECT
    return Classification.INCORRECT


def build_prompt(round_: Round, spoken_sentence: str, current_attempt: str) -> str:
    """
    評価AIへの指示文を作成

    Args:
        round_: 現在のラウンド
        spoken_sentence: 発話文
        current_attempt: 分かっている単語を埋めた途中の文

    Returns:
        指示文
    """
    return WORD_WEAVER_PROMPT.format(
        skeleton=round_.skeleton_text,
        word_cloud=json.dumps(list(round_.word_cloud)),
        spoken_sentence=spoken_sentence,
        current_attempt=current_attempt,
    )


def _parse_reply(response: httpx.Response) -> str:
    """generateContentの応答から返答テキストを取り出す"""
    try:
        data = response.json()
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise TransportError(f"評価AIの応答形式が不正です: {response.text[:200]}") from e
    if not isinstance(text, str):
        raise TransportError("評価AIの応答にテキストが含まれていません")
    return text.strip()


class FeedbackClient:
    """評価AI（Gemini API）を使用するサービスクラス"""

    def __init__(
        self,
        api_key: str | None = None,
        endpoint: str | None = None,
        timeout: float | None = None,
        transports: Sequence[AuthTransport] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        初期化処理
        環境変数からAPIキーを取得し、HTTPクライアントを初期化する

        Args:
            api_key: APIキー（指定しない場合はGEMINI_API_KEY環境変数）
            endpoint: generateContentエンドポイント
            timeout: 1回の評価全体のタイムアウト（秒）
            transports: 試行する認証方式（先頭から順に試す）
            http_client: 使用するHTTPクライアント（テスト用）
        """
        resolved_key: str | None = api_key or os.getenv("GEMINI_API_KEY")
        if not resolved_key:
            raise ValueError("GEMINI_API_KEY環境変数が設定されていません")
        self.api_key: str = resolved_key
        self.endpoint: str = endpoint or get_gemini_endpoint()
        self.timeout: float = timeout if timeout is not None else get_evaluator_timeout()
        self.transports: List[AuthTransport] = list(
            transports if transports is not None else (QueryKeyTransport(), BearerHeaderTransport())
        )
        self._client: httpx.AsyncClient = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout)
        )

    async def __aenter__(self) -> "FeedbackClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """HTTPクライアントを閉じる"""
        await self._client.aclose()

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        """generateContentのリクエストボディを作成"""
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": dict(GENERATION_CONFIG),
        }

    async def evaluate(
        self, round_: Round, spoken_sentence: str, current_attempt: str
    ) -> EvaluationOutcome:
        """
        発話文を評価AIに送り、判定結果を取得

        Args:
            round_: 現在のラウンド
            spoken_sentence: 発話文
            current_attempt: 分かっている単語を埋めた途中の文

        Returns:
            評価結果（通信に失敗した場合はTRANSPORT_ERROR）
        """
        prompt = build_prompt(round_, spoken_sentence, current_attempt)
        logger.debug("評価AIへの指示文: %s", prompt)
        return await self.request_feedback(prompt)

    async def request_feedback(self, prompt: str) -> EvaluationOutcome:
        """
        指示文を送信して返答を分類

        Args:
            prompt: 指示文

        Returns:
            評価結果
        """
        payload = self.build_payload(prompt)
        try:
            raw_text = await asyncio.wait_for(self._deliver(payload), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("評価AIの応答が%.1f秒以内に返りませんでした", self.timeout)
            return EvaluationOutcome(
                classification=Classification.TRANSPORT_ERROR,
                error_detail=f"timeout after {self.timeout:.1f}s",
            )
        except TransportError as e:
            logger.error("評価AIとの通信に失敗しました: %s", e)
            return EvaluationOutcome(
                classification=Classification.TRANSPORT_ERROR,
                error_detail=str(e),
            )

        classification = classify_reply(raw_text)
        logger.info("評価AIの返答: %s (%s)", raw_text, classification.value)
        return EvaluationOutcome(raw_text=raw_text, classification=classification)

    async def _deliver(self, payload: Dict[str, Any]) -> str:
        """
        認証方式を順に試して同じ内容を送信

        認証失敗の場合のみ次の方式で再送し、それ以外の失敗は即座にTransportErrorとする

        Args:
            payload: リクエストボディ

        Returns:
            返答テキスト

        Raises:
            TransportError: すべての認証方式が失敗した場合、または通信・応答エラーの場合
        """
        last_error: TransportError | None = None
        for transport in self.transports:
            params, headers = transport.credentials(self.api_key)
            try:
                response = await self._client.post(
                    self.endpoint, params=params, headers=headers, json=payload
                )
            except httpx.TimeoutException as e:
                raise TransportError(f"評価AIへの接続がタイムアウトしました ({transport.name})") from e
            except httpx.HTTPError as e:
                raise TransportError(f"評価AIへの接続に失敗しました ({transport.name}): {e}") from e

            if response.status_code in AUTH_FAILURE_STATUSES:
                logger.warning(
                    "認証に失敗しました (%s, status=%d)。次の認証方式を試します",
                    transport.name,
                    response.status_code,
                )
                last_error = TransportError(
                    f"認証に失敗しました ({transport.name}): {response.text[:200]}",
                    status_code=response.status_code,
                )
                continue

            if response.is_error:
                raise TransportError(
                    f"評価AIがエラーを返しました (status={response.status_code}): {response.text[:200]}",
                    status_code=response.status_code,
                )
            return _parse_reply(response)

        raise last_error or TransportError("使用できる認証方式がありません")
