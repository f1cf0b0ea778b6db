import enum

class StaffRole(str, enum.Enum):
    staff = 'staff'
    manager = 'manager'  # 報告書の承認・差し戻し、メンテナンス実行

class RecordItem(str, enum.Enum):
    """支援記録の項目"""
    excretion = '排泄'
    meal = '食事'
    vital = 'バイタル'
    medication = '服薬'
    other = 'その他'

class IncidentStatus(str, enum.Enum):
    """報告書の承認状態（シートに保存される値）"""
    pending = '未承認'
    approved = '承認済'
    returned = '差戻し'

class AuditStatus(str, enum.Enum):
    success = 'SUCCESS'
    error = 'ERROR'

class AuditAction(str, enum.Enum):
    # 認証
    signin_success = 'SIGNIN_SUCCESS'
    signin_denied = 'SIGNIN_DENIED'
    pin_fail = 'PIN_FAIL'
    # 支援記録
    record_save = 'RECORD_SAVE'
    record_edit = 'RECORD_EDIT'
    record_delete = 'RECORD_DELETE'
    record_restore = 'RECORD_RESTORE'
    # ヒヤリハット・事故報告
    add_incident = 'ADD_INCIDENT'
    incident_update = 'INCIDENT_UPDATE'
    incident_approve = 'INCIDENT_APPROVE'
    incident_return = 'INCIDENT_RETURN'
    incident_trash = 'INCIDENT_TRASH'
    incident_restore = 'INCIDENT_RESTORE'
    incident_csv_export = 'INCIDENT_CSV_EXPORT'
    # メンテナンス
    archive_move = 'ARCHIVE_MOVE'
    archive_cleanup = 'ARCHIVE_CLEANUP'
    trash_cleanup = 'TRASH_CLEANUP'
    incident_trash_cleanup = 'INCIDENT_TRASH_CLEANUP'
    log_cleanup = 'LOG_CLEANUP'

class AuditTargetType(str, enum.Enum):
    session = 'SESSION'
    record = 'RECORD'
    incident = 'INCIDENT'
    partition = 'PARTITION'
    audit_log = 'LOG'
