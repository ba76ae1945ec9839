"""
客户服务
中心客户管理；软删除，电话和邮箱在中心内唯一
"""
from datetime import datetime
from typing import List, Optional, Tuple
import logging

from sqlalchemy import or_, desc
from sqlalchemy.orm import Session

from app.models.ontology import Client, ClientType
from app.models.schemas import ClientCreate, ClientUpdate
from app.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

# 没有邮箱的快速预约使用 {电话}@PLACEHOLDER_EMAIL_DOMAIN 占位
PLACEHOLDER_EMAIL_DOMAIN = "temp.agendact.com"


class ClientService:
    """客户服务"""

    def __init__(self, db: Session):
        self.db = db

    def _live(self, center_id: int):
        return self.db.query(Client).filter(
            Client.center_id == center_id,
            Client.deleted_at.is_(None),
        )

    def get_clients(
        self,
        center_id: int,
        search: Optional[str] = None,
        client_type: Optional[ClientType] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Client], int]:
        query = self._live(center_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Client.first_name.ilike(pattern),
                Client.last_name.ilike(pattern),
                Client.phone.ilike(pattern),
                Client.email.ilike(pattern),
            ))
        if client_type:
            query = query.filter(Client.type == client_type)

        total = query.count()
        items = query.order_by(desc(Client.created_at), desc(Client.id)) \
            .offset((page - 1) * limit).limit(limit).all()
        return items, total

    def get_client(self, center_id: int, client_id: int) -> Client:
        client = self._live(center_id).filter(Client.id == client_id).first()
        if not client:
            raise NotFoundError("Client not found")
        return client

    def find_by_contact(self, center_id: int, phone: Optional[str] = None,
                        email: Optional[str] = None) -> Optional[Client]:
        """先按电话、再按邮箱查找有效客户"""
        if phone:
            client = self._live(center_id).filter(Client.phone == phone).first()
            if client:
                return client
        if email:
            return self._live(center_id).filter(Client.email == email).first()
        return None

    def _ensure_unique(self, center_id: int, phone: Optional[str], email: Optional[str],
                       exclude_id: Optional[int] = None) -> None:
        for column, value, label in ((Client.phone, phone, "phone"), (Client.email, email, "email")):
            if not value:
                continue
            query = self._live(center_id).filter(column == value)
            if exclude_id is not None:
                query = query.filter(Client.id != exclude_id)
            if query.first():
                raise ConflictError(f"A client with this {label} already exists")

    def add_client(self, center_id: int, data: ClientCreate) -> Client:
        """只写入不提交（在更大的事务中使用）"""
        self._ensure_unique(center_id, data.phone, data.email)
        client = Client(center_id=center_id, last_activity_at=datetime.utcnow(), **data.model_dump())
        self.db.add(client)
        self.db.flush()
        return client

    def create_client(self, center_id: int, data: ClientCreate) -> Client:
        client = self.add_client(center_id, data)
        self.db.commit()
        self.db.refresh(client)
        logger.info(f"Client {client.id} created in center {center_id}")
        return client

    def update_client(self, center_id: int, client_id: int, data: ClientUpdate) -> Client:
        client = self.get_client(center_id, client_id)
        changes = data.model_dump(exclude_unset=True)
        self._ensure_unique(center_id, changes.get("phone"), changes.get("email"), exclude_id=client.id)
        for key, value in changes.items():
            setattr(client, key, value)
        self.db.commit()
        self.db.refresh(client)
        return client

    def delete_client(self, center_id: int, client_id: int) -> None:
        client = self.get_client(center_id, client_id)
        client.deleted_at = datetime.utcnow()
        self.db.commit()
        logger.info(f"Client {client_id} soft-deleted")

    def touch(self, client: Client) -> None:
        """记录客户活跃时间，用于促销群发的排序"""
        client.last_activity_at = datetime.utcnow()
