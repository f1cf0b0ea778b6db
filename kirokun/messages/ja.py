"""
日本語メッセージ定数

アプリケーション全体で使用される日本語のメッセージを一元管理します。
"""

# ==========================================
# 共通例外
# ==========================================

EXC_BAD_REQUEST = "不正なリクエストです"
EXC_NOT_FOUND = "リソースが見つかりません"
EXC_FORBIDDEN = "この操作を行う権限がありません"
EXC_INTERNAL_ERROR = "システムエラーが発生しました。時間をおいて再度お試しいただくか、管理者に連絡してください。"
EXC_UPSTREAM_UNAVAILABLE = "データの読み書きに失敗しました。時間をおいて再度お試しいただくか、管理者に連絡してください。"
EXC_INTEGRITY_VIOLATION = "データの整合性チェックに失敗したため処理を取り消しました。管理者に連絡してください。"
EXC_STALE_REFERENCE = "対象のデータは既に移動または削除されています。画面を再読み込みしてからやり直してください。"

# ==========================================
# 認証関連 (auths.py)
# ==========================================

AUTH_INCORRECT_CREDENTIALS = "名前またはPINが正しくありません"
AUTH_OFFICE_NOT_AUTHORIZED = "事業所「{office}」へのアクセス権限がありません"
AUTH_SIGNIN_SUCCESS = "サインインしました"
AUTH_PIN_REQUIRED = "PINを入力してください"

# ==========================================
# 権限関連 (deps.py)
# ==========================================

PERM_CREDENTIALS_INVALID = "認証情報を検証できません"
PERM_MANAGER_REQUIRED = "管理者(manager)の権限が必要です"
PERM_RECORDER_OR_MANAGER_REQUIRED = "記録者本人または管理者(manager)のみが操作できます"
PERM_MANAGER_APPROVE = "管理者(manager)のみが報告書を承認できます"
PERM_MANAGER_RETURN = "管理者(manager)のみが報告書を差し戻せます"

# ==========================================
# 事業所関連
# ==========================================

OFFICE_NOT_FOUND = "事業所「{office}」が見つかりません"
OFFICE_INCIDENT_STORE_NOT_CONFIGURED = "事業所「{office}」にはヒヤリハット・事故報告の保存先が設定されていません"

# ==========================================
# 支援記録関連 (records.py)
# ==========================================

RECORD_USERS_REQUIRED = "利用者が選択されていません"
RECORD_DATE_INVALID = "日付の形式が正しくありません"
RECORD_ROW_INVALID = "指定された行番号が無効です。既に削除された可能性があります。"
RECORD_TRASH_ROW_INVALID = "指定されたゴミ箱の行が見つかりません。既に復元または削除された可能性があります。"
RECORD_SAVED = "{count}件の記録を保存"
RECORD_UPDATED = "行{row}の記録を更新"
RECORD_DELETED = "行{row}の記録をゴミ箱へ移動"
RECORD_RESTORED = "ゴミ箱から記録を復元"
RECORD_LIMIT_INVALID = "取得件数は1以上を指定してください"

# ==========================================
# ページネーション
# ==========================================

PAGINATION_TOKEN_INVALID = "継続トークンの形式が正しくありません"
PAGINATION_TOKEN_STALE = "継続トークンが指す{partition}は存在しません。最初から取得し直してください。"

# ==========================================
# ヒヤリハット・事故報告関連 (incidents.py)
# ==========================================

INCIDENT_NOT_FOUND = "報告書(ID: {incident_id})が見つかりません"
INCIDENT_TRASH_ROW_INVALID = "指定された報告書はゴミ箱に見つかりません"
INCIDENT_RETURN_REASON_REQUIRED = "差し戻し理由を入力してください"
INCIDENT_ALREADY_APPROVED = "この報告書は既に承認済みです"
INCIDENT_NOT_PENDING = "未承認の報告書のみ差し戻しできます"
INCIDENT_OCCUR_DATE_INVALID = "発生日時の形式が正しくありません"
INCIDENT_CREATED = "報告書を登録"
INCIDENT_UPDATED = "報告書を更新(未承認に戻しました)"
INCIDENT_APPROVED = "報告書を承認"
INCIDENT_RETURNED = "報告書を差し戻し"
INCIDENT_TRASHED = "報告書をゴミ箱へ移動"
INCIDENT_RESTORED = "ゴミ箱から報告書を復元"
INCIDENT_CSV_EXPORTED = "承認済み報告書{count}件をCSV出力"
INCIDENT_CSV_UPLOAD_FAILED = "CSVファイルのアップロードに失敗しました。時間をおいて再度お試しください。"

# ==========================================
# メンテナンス関連 (maintenance)
# ==========================================

MAINTENANCE_ARCHIVE_MOVED = "{count}件を{partition}へ移動"
MAINTENANCE_ARCHIVE_INTEGRITY = "移動件数が一致しません (元: {original}, 残: {remaining}, 移動: {moved})"
MAINTENANCE_ARCHIVE_DELETED = "保存期限切れのアーカイブ{partition}を削除"
MAINTENANCE_TRASH_PURGED = "保存期限切れのゴミ箱データ{count}件を削除"
MAINTENANCE_LOG_PURGED = "保存期限切れの操作ログ{count}件を削除"
