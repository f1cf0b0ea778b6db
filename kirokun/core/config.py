import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import SecretStr

ENV_FILE = os.getenv("ENV_FILE", ".env")

class Settings(BaseSettings):
    """
    アプリケーションの設定を管理するクラス。
    .envファイルから環境変数を読み込みます。
    """
    # .envファイルを読み込むための設定
    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding='utf-8', extra='ignore'
    )

    # --- セッショントークン設定 ---
    # `openssl rand -hex 32` コマンドなどで生成した強力な秘密鍵を設定してください。
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    # セッションの有効期限（分単位）
    SESSION_MINUTES: int = 60

    # --- ストレージ設定 ---
    # sql: DATABASE_URL のデータベースに保存 / memory: プロセス内メモリ（開発・テスト用）
    STORAGE_BACKEND: str = "sql"
    DATABASE_URL: Optional[str] = None
    # 事業所マッピング・職員マスタ・操作ログを保持するストアID
    MASTER_STORE_ID: str = "master"
    STORAGE_TIMEOUT_SECONDS: float = 10.0

    # --- タイムゾーン ---
    TIMEZONE: str = "Asia/Tokyo"

    # --- 支援記録の取得件数 ---
    RECORD_PAGE_LIMIT_DEFAULT: int = 500
    RECORD_PAGE_LIMIT_MAX: int = 1000

    # --- 逆順走査の1回あたりの読み取り行数 ---
    SCAN_CHUNK_SIZE: int = 3000

    # --- ヒヤリハット・事故報告 ---
    INCIDENT_PAGE_LIMIT_MAX: int = 100

    # --- アーカイブ・保存期間 ---
    ARCHIVE_THRESHOLD_DAYS: int = 180
    ARCHIVE_BATCH_SIZE: int = 1000
    ARCHIVE_RETENTION_YEARS: int = 5
    TRASH_RETENTION_DAYS: int = 30
    AUDIT_RETENTION_DAYS: int = 365
    MAINTENANCE_INTERVAL_HOURS: int = 24

    # --- API設定 ---
    API_V1_STR: str = "/api/v1"

    # --- S3 Storage Settings ---
    S3_ENDPOINT_URL: Optional[str] = None
    S3_ACCESS_KEY: Optional[str] = None
    S3_SECRET_KEY: Optional[SecretStr] = None
    S3_BUCKET_NAME: Optional[str] = None
    S3_REGION: Optional[str] = None


# 設定クラスのインスタンスを作成し、他のモジュールからインポートして使用できるようにします。
settings = Settings()
