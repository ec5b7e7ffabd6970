from datetime import date

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import (
    Column, Integer, String, Boolean, Date, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


db = SQLAlchemy(model_class=Base)

# Column names follow the relational schema (and are the API field names)


class Member(db.Model):
    __tablename__ = 'Member'

    MemberId = Column(Integer, primary_key=True)
    Firstname = Column(String(40))
    Lastname = Column(String(40))
    Email = Column(String(255), nullable=False, unique=True)
    Active = Column(Boolean, nullable=False, default=True)

    # Relationships
    teams = relationship("TeamMember", back_populates="member", cascade="all, delete-orphan")


class User(db.Model):
    __tablename__ = 'User'

    UserId = Column(Integer, primary_key=True)
    Firstname = Column(String(40))
    Lastname = Column(String(40))
    Email = Column(String(255), nullable=False, unique=True)
    Password = Column(String(255))  # PBKDF2 'salt$hash'
    PasswordResetRequest = Column(String(32))  # ISO timestamp of last reset request
    Role = Column(String(16), nullable=False, default='user')
    ApiToken = Column(String(32))  # ISO timestamp the current API token was issued


class Team(db.Model):
    __tablename__ = 'Team'

    TeamId = Column(Integer, primary_key=True)
    Name = Column(String(80), nullable=False, unique=True)

    # Relationships
    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")


class TeamMember(db.Model):
    __tablename__ = 'TeamMember'
    __table_args__ = (UniqueConstraint('MemberId', 'TeamId'),)

    TeamMemberId = Column(Integer, primary_key=True)
    MemberId = Column(Integer, ForeignKey('Member.MemberId'), nullable=False)
    TeamId = Column(Integer, ForeignKey('Team.TeamId'), nullable=False)
    JoinedOn = Column(Date, default=date.today)

    # Relationships
    member = relationship("Member", back_populates="teams")
    team = relationship("Team", back_populates="members")
