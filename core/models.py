# core/models.py
"""
Data access for members, users and teams.

Rows are returned as plain dicts keyed by column name, so the same values
can be rendered into templates, serialised to JSON/XML, or relayed on.
Validation errors use the same wording as the MySQL server the schema was
designed for, e.g. "Duplicate entry 'x@y.com' for key 'Email'".
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, Date, Integer, String, func, select
from sqlalchemy.exc import IntegrityError

from core import database_models as tables
from core.database_models import db
from core.security_manager import hash_password

logger = logging.getLogger(__name__)


class ModelError(Exception):
    """Validation/constraint failure; status is the HTTP status to report"""

    def __init__(self, message: str, status: int = 409):
        super().__init__(message)
        self.message = message
        self.status = status


class Model:
    """Generic CRUD over a single table"""

    table = None
    order_by = ()

    @classmethod
    def columns(cls):
        return {column.name: column for column in cls.table.__table__.columns}

    @classmethod
    def primary_key(cls) -> str:
        return cls.table.__table__.primary_key.columns.values()[0].name

    @classmethod
    def to_dict(cls, row) -> Dict[str, Any]:
        result = {}
        for name in cls.columns():
            value = getattr(row, name)
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            result[name] = value
        return result

    @classmethod
    def _row(cls, id):
        try:
            id = int(id)
        except (TypeError, ValueError):
            return None
        return db.session.get(cls.table, id)

    @classmethod
    def get(cls, id) -> Optional[Dict[str, Any]]:
        """Return the row with primary key *id* (int or numeric string), or None"""
        row = cls._row(id)
        return cls.to_dict(row) if row is not None else None

    @classmethod
    def get_by(cls, field: str, value) -> List[Dict[str, Any]]:
        return cls.find({field: value})

    @classmethod
    def find(cls, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Rows matching every field=value in *filters*.

        Field names are matched case-insensitively against column names;
        string values are compared case-insensitively.
        """
        columns = cls.columns()
        by_lower = {name.lower(): name for name in columns}

        query = select(cls.table)
        for field, value in (filters or {}).items():
            name = by_lower.get(field.lower())
            if name is None:
                raise ModelError(f"Unknown column '{field}' in 'where clause'", 400)
            column = getattr(cls.table, name)
            value = cls._coerce_value(name, columns[name], value)
            if isinstance(columns[name].type, String) and value is not None:
                query = query.where(func.lower(column) == value.lower())
            else:
                query = query.where(column == value)

        order = [getattr(cls.table, name) for name in cls.order_by] or [getattr(cls.table, cls.primary_key())]
        rows = db.session.execute(query.order_by(*order)).scalars().all()
        return [cls.to_dict(row) for row in rows]

    @classmethod
    def count(cls) -> int:
        return db.session.execute(select(func.count()).select_from(cls.table)).scalar_one()

    @classmethod
    def insert(cls, values: Dict[str, Any]) -> int:
        """Insert a new row from *values*; returns the new primary key"""
        values = cls._coerce(values)
        cls._check_required(values, inserting=True)
        cls._check_unique(values)

        row = cls.table(**values)
        db.session.add(row)
        try:
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            raise cls._constraint_error(values, e)

        id = getattr(row, cls.primary_key())
        logger.info(f"{cls.__name__} {id} inserted")
        return id

    @classmethod
    def update(cls, id, values: Dict[str, Any]) -> bool:
        """Update row *id* with *values*; returns False if there is no such row"""
        values = cls._coerce(values)
        cls._check_required(values, inserting=False)

        row = cls._row(id)
        if row is None:
            return False

        pk = cls.primary_key()
        row_id = getattr(row, pk)
        if pk in values:
            if values[pk] != row_id:
                raise ModelError(f"Column '{pk}' cannot be updated", 400)
            del values[pk]
        cls._check_unique(values, exclude_id=row_id)

        for name, value in values.items():
            setattr(row, name, value)
        try:
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            raise cls._constraint_error(values, e, exclude_id=row_id)

        logger.info(f"{cls.__name__} {id} updated")
        return True

    @classmethod
    def delete(cls, id) -> bool:
        """Delete row *id*; returns False if there is no such row"""
        row = cls._row(id)
        if row is None:
            return False
        db.session.delete(row)
        db.session.commit()
        logger.info(f"{cls.__name__} {id} deleted")
        return True

    # ------------ validation

    @classmethod
    def _coerce(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        columns = cls.columns()
        coerced = {}
        for name, value in values.items():
            if name not in columns:
                raise ModelError(f"Unknown column '{name}' in 'field list'", 400)
            coerced[name] = cls._coerce_value(name, columns[name], value)
        return coerced

    @staticmethod
    def _coerce_value(name, column, value):
        # form posts and query strings deliver everything as strings
        if not isinstance(value, str):
            return value
        if isinstance(column.type, Boolean):
            return value.strip().lower() in ('true', '1', 'on', 'yes')
        if isinstance(column.type, Integer):
            try:
                return int(value)
            except ValueError:
                raise ModelError(f"Incorrect integer value: '{value}' for column '{name}'", 400)
        if isinstance(column.type, Date):
            try:
                return date.fromisoformat(value)
            except ValueError:
                raise ModelError(f"Incorrect date value: '{value}' for column '{name}'", 400)
        return value

    @classmethod
    def _check_required(cls, values: Dict[str, Any], inserting: bool):
        for name, column in cls.columns().items():
            if column.nullable or column.primary_key or column.default is not None:
                continue
            missing = name not in values if inserting else False
            if missing or (name in values and values[name] is None):
                raise ModelError(f"Column '{name}' cannot be null", 400)

    @classmethod
    def _duplicate(cls, values, exclude_id=None) -> Optional[ModelError]:
        """
        Error for the first unique column whose value is already taken;
        string values compare case-insensitively, as they do in find()
        """
        pk = getattr(cls.table, cls.primary_key())
        for name, column in cls.columns().items():
            if not column.unique or values.get(name) is None:
                continue
            value = values[name]
            if isinstance(column.type, String):
                query = select(pk).where(func.lower(getattr(cls.table, name)) == str(value).lower())
            else:
                query = select(pk).where(getattr(cls.table, name) == value)
            if exclude_id is not None:
                query = query.where(pk != exclude_id)
            if db.session.execute(query).first() is not None:
                return ModelError(f"Duplicate entry '{value}' for key '{name}'", 409)
        return None

    @classmethod
    def _check_unique(cls, values, exclude_id=None):
        error = cls._duplicate(values, exclude_id)
        if error is not None:
            raise error

    @classmethod
    def _constraint_error(cls, values, error: IntegrityError, exclude_id=None) -> ModelError:
        duplicate = cls._duplicate(values, exclude_id)
        if duplicate is not None:
            return duplicate

        logger.warning(f"{cls.__name__} constraint failure: {error.orig}")
        return ModelError(str(error.orig), 409)


class Member(Model):
    table = tables.Member
    order_by = ('Lastname', 'Firstname')


class User(Model):
    table = tables.User
    order_by = ('Lastname', 'Firstname')

    @classmethod
    def get_by_email(cls, email: str) -> Optional[Dict[str, Any]]:
        if not email:
            return None
        users = cls.find({'Email': email})
        return users[0] if users else None

    @classmethod
    def insert(cls, values: Dict[str, Any]) -> int:
        values = dict(values)
        if values.get('Password'):
            values['Password'] = hash_password(values['Password'])
        return super().insert(values)

    @classmethod
    def set_password(cls, id, password: str) -> bool:
        return cls.update(id, {'Password': hash_password(password), 'PasswordResetRequest': None})

    @classmethod
    def refresh_api_token(cls, id, now: datetime) -> Optional[Dict[str, Any]]:
        """Issue a new API token (the issue time) and return the reloaded user"""
        cls.update(id, {'ApiToken': now.isoformat()})
        return cls.get(id)


class Team(Model):
    table = tables.Team
    order_by = ('Name',)

    @classmethod
    def members(cls, team_id) -> List[Dict[str, Any]]:
        query = (
            select(tables.Member)
            .join(tables.TeamMember, tables.TeamMember.MemberId == tables.Member.MemberId)
            .where(tables.TeamMember.TeamId == team_id)
            .order_by(tables.Member.Lastname, tables.Member.Firstname)
        )
        return [Member.to_dict(row) for row in db.session.execute(query).scalars()]

    @classmethod
    def add_member(cls, team_id, member_id) -> int:
        if Member.get(member_id) is None:
            raise ModelError(f"Member '{member_id}' not found", 404)
        return TeamMembership.insert({'TeamId': team_id, 'MemberId': member_id})

    @classmethod
    def remove_member(cls, team_id, member_id) -> bool:
        memberships = TeamMembership.find({'TeamId': team_id, 'MemberId': member_id})
        if not memberships:
            return False
        return TeamMembership.delete(memberships[0]['TeamMemberId'])


class TeamMembership(Model):
    table = tables.TeamMember

    @classmethod
    def _constraint_error(cls, values, error, exclude_id=None):
        if cls.find({'TeamId': values.get('TeamId'), 'MemberId': values.get('MemberId')}):
            return ModelError(f"Duplicate entry '{values['MemberId']}-{values['TeamId']}' for key 'MemberId'", 409)
        return super()._constraint_error(values, error, exclude_id)
