"""
API接続チェックサービス
評価AIと音声認識の設定状態をチェックする
"""
import os
from typing import Dict, List

import azure.cognitiveservices.speech as speechsdk

from word_weaver.config import get_gemini_endpoint


class APICheckService:
    """API設定状態をチェックするサービスクラス"""

    def check_gemini_api(self) -> Dict[str, str]:
        """
        評価AI（Gemini API）の設定状態をチェック

        Returns:
            API名と状態を含む辞書
        """
        api_key: str | None = os.getenv("GEMINI_API_KEY")

        if not api_key:
            return {
                "name": "Gemini API",
                "status": "不明",
                "message": "APIキーが設定されていません"
            }

        endpoint = get_gemini_endpoint()
        if not endpoint.startswith("https://"):
            return {
                "name": "Gemini API",
                "status": "エラー",
                "message": f"エンドポイントが不正です: {endpoint}"
            }

        return {
            "name": "Gemini API",
            "status": "利用可能",
            "message": "APIキーが設定されています"
        }

    def check_azure_speech_api(self) -> Dict[str, str]:
        """
        Azure Speech Service APIの設定状態をチェック

        Returns:
            API名と状態を含む辞書
        """
        speech_key: str | None = os.getenv("AZURE_SPEECH_KEY")
        speech_region: str | None = os.getenv("AZURE_SPEECH_REGION")

        if not speech_key or not speech_region:
            return {
                "name": "Azure Speech Service API",
                "status": "不明",
                "message": "APIキーまたはリージョンが設定されていません"
            }

        try:
            # SpeechConfigの作成で設定値を確認
            speechsdk.SpeechConfig(
                subscription=speech_key,
                region=speech_region
            )
            return {
                "name": "Azure Speech Service API",
                "status": "利用可能",
                "message": "APIキーとリージョンが設定されています"
            }
        except Exception as e:
            return {
                "name": "Azure Speech Service API",
                "status": "エラー",
                "message": f"接続エラー: {str(e)}"
            }

    def check_all_apis(self) -> List[Dict[str, str]]:
        """
        全てのAPIの設定状態をチェック

        Returns:
            API状態のリスト
        """
        return [self.check_gemini_api(), self.check_azure_speech_api()]
