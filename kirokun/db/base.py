from sqlalchemy.orm import (
    DeclarativeBase
)

# 全てのモデルが継承するためのBaseクラスを定義
class Base(DeclarativeBase):
    pass
