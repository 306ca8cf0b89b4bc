import os
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import extract, func, or_
from sqlalchemy.orm import Session

from database.models import (
    AuthSessionModel, BudgetModel, CategoryModel, TransactionModel, UserModel, UserSettingsModel
)
from models.budget import BudgetCreate, BudgetUpdate
from models.category import CategoryCreate, CategoryUpdate
from models.settings import DEFAULT_SETTINGS, SettingsUpdate
from models.transaction import TransactionCreate, TransactionFilters, TransactionUpdate
from models.user import UserUpsert


class NotFoundError(Exception):
    pass


def escape_like(value: str) -> str:
    """Recherche littérale: neutralise les jokers % et _ de LIKE"""
    return value.replace("/", "//").replace("%", "/%").replace("_", "/_")


# Sessions
def create_auth_session(db: Session, user_id: str, email: Optional[str] = None,
                        ttl: Optional[timedelta] = None, token: Optional[str] = None):
    """Enregistre une session émise par le fournisseur d'identité"""
    if ttl is None:
        ttl = timedelta(hours=float(os.getenv("SESSION_TTL_HOURS", "24")))
    db_session = AuthSessionModel(
        token=token or secrets.token_urlsafe(32),
        user_id=user_id,
        email=email,
        expires_at=datetime.utcnow() + ttl,
    )
    db.add(db_session)
    db.commit()
    db.refresh(db_session)
    return db_session


def get_active_auth_session(db: Session, token: str):
    """Récupère une session non expirée par son jeton"""
    return db.query(AuthSessionModel).filter(
        AuthSessionModel.token == token,
        AuthSessionModel.expires_at > datetime.utcnow()
    ).first()


def delete_expired_auth_sessions(db: Session):
    """Supprime les sessions expirées"""
    count = db.query(AuthSessionModel).filter(
        AuthSessionModel.expires_at <= datetime.utcnow()
    ).delete()
    db.commit()
    return count


# Users
def upsert_user(db: Session, user_id: str, user: UserUpsert):
    """Crée l'utilisateur ou met à jour son nom (clé: email); un nom absent est conservé"""
    existing = db.query(UserModel).filter(UserModel.email == user.email).first()
    if existing:
        if user.name is not None:
            existing.name = user.name
        db.commit()
        db.refresh(existing)
        return existing

    name = user.name or user.email.split("@")[0]
    db_user = UserModel(id=user.id or user_id, email=user.email, name=name)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


# Categories
def get_categories(db: Session, user_id: str):
    """Récupère les catégories de l'utilisateur, triées par nom"""
    return db.query(CategoryModel).filter(
        CategoryModel.user_id == user_id
    ).order_by(CategoryModel.name.asc()).all()


def get_category(db: Session, user_id: str, category_id: str):
    category = db.query(CategoryModel).filter(
        CategoryModel.id == category_id,
        CategoryModel.user_id == user_id
    ).first()
    if not category:
        raise NotFoundError(f"Category {category_id} not found")
    return category


def create_category(db: Session, user_id: str, category: CategoryCreate):
    db_category = CategoryModel(name=category.name, type=category.type, user_id=user_id)
    db.add(db_category)
    db.commit()
    db.refresh(db_category)
    return db_category


def update_category(db: Session, user_id: str, category_id: str, category_update: CategoryUpdate):
    """Renomme une catégorie"""
    category = get_category(db, user_id, category_id)
    category.name = category_update.name
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, user_id: str, category_id: str):
    """Supprime une catégorie; les budgets associés sont supprimés par la base"""
    category = get_category(db, user_id, category_id)
    db.delete(category)
    db.commit()


# Budgets
def get_budgets(db: Session, user_id: str, month: int, year: int):
    """Récupère les budgets d'un mois"""
    return db.query(BudgetModel).filter(
        BudgetModel.user_id == user_id,
        BudgetModel.month == month,
        BudgetModel.year == year
    ).all()


def get_budget(db: Session, user_id: str, budget_id: str):
    budget = db.query(BudgetModel).filter(
        BudgetModel.id == budget_id,
        BudgetModel.user_id == user_id
    ).first()
    if not budget:
        raise NotFoundError(f"Budget {budget_id} not found")
    return budget


def upsert_budget(db: Session, user_id: str, budget: BudgetCreate, month: int, year: int):
    """Crée ou met à jour le budget d'une catégorie pour un mois"""
    # La catégorie doit appartenir à l'utilisateur et être une catégorie de dépenses
    category = get_category(db, user_id, budget.category_id)
    if category.type != "EXPENSE":
        raise ValueError(f"Category {category.id} is not an expense category")

    existing = db.query(BudgetModel).filter(
        BudgetModel.user_id == user_id,
        BudgetModel.category_id == budget.category_id,
        BudgetModel.month == month,
        BudgetModel.year == year
    ).first()

    if existing:
        existing.limit = budget.limit
        db.commit()
        db.refresh(existing)
        return existing

    db_budget = BudgetModel(
        user_id=user_id,
        category_id=budget.category_id,
        limit=budget.limit,
        month=month,
        year=year
    )
    db.add(db_budget)
    db.commit()
    db.refresh(db_budget)
    return db_budget


def update_budget(db: Session, user_id: str, budget_id: str, budget_update: BudgetUpdate):
    """Met à jour la limite d'un budget"""
    budget = get_budget(db, user_id, budget_id)
    budget.limit = budget_update.limit
    db.commit()
    db.refresh(budget)
    return budget


def delete_budget(db: Session, user_id: str, budget_id: str):
    budget = get_budget(db, user_id, budget_id)
    db.delete(budget)
    db.commit()


# Transactions
def get_transactions(db: Session, user_id: str, filters: Optional[TransactionFilters] = None):
    """Récupère les transactions de l'utilisateur, les plus récentes d'abord"""
    query = db.query(TransactionModel).filter(TransactionModel.user_id == user_id)

    if filters is not None:
        if filters.type:
            query = query.filter(TransactionModel.type == filters.type)
        if filters.category_id:
            query = query.filter(TransactionModel.category_id == filters.category_id)
        if filters.search:
            pattern = f"%{escape_like(filters.search.lower())}%"
            query = query.join(TransactionModel.category).filter(or_(
                func.lower(TransactionModel.description).like(pattern, escape="/"),
                func.lower(CategoryModel.name).like(pattern, escape="/")
            ))
        if filters.year:
            query = query.filter(extract("year", TransactionModel.date) == filters.year)
            if filters.month:
                query = query.filter(extract("month", TransactionModel.date) == filters.month)
        if filters.start_date and filters.end_date:
            query = query.filter(
                TransactionModel.date >= filters.start_date,
                TransactionModel.date <= filters.end_date
            )

    return query.order_by(TransactionModel.date.desc()).all()


def get_transactions_by_month(db: Session, user_id: str, month: int, year: int):
    """Récupère les transactions d'un mois spécifique"""
    return get_transactions(db, user_id, TransactionFilters(month=month, year=year))


def get_transaction(db: Session, user_id: str, transaction_id: str):
    transaction = db.query(TransactionModel).filter(
        TransactionModel.id == transaction_id,
        TransactionModel.user_id == user_id
    ).first()
    if not transaction:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return transaction


def create_transaction(db: Session, user_id: str, transaction: TransactionCreate):
    """Crée une nouvelle transaction"""
    get_category(db, user_id, transaction.category_id)
    db_transaction = TransactionModel(
        type=transaction.type,
        amount=transaction.amount,
        category_id=transaction.category_id,
        description=transaction.description,
        date=transaction.date,
        user_id=user_id
    )
    db.add(db_transaction)
    db.commit()
    db.refresh(db_transaction)
    return db_transaction


def update_transaction(db: Session, user_id: str, transaction_id: str, transaction_update: TransactionUpdate):
    """Remplace les champs d'une transaction"""
    transaction = get_transaction(db, user_id, transaction_id)
    get_category(db, user_id, transaction_update.category_id)
    transaction.type = transaction_update.type
    transaction.amount = transaction_update.amount
    transaction.category_id = transaction_update.category_id
    transaction.description = transaction_update.description
    transaction.date = transaction_update.date
    db.commit()
    db.refresh(transaction)
    return transaction


def delete_transaction(db: Session, user_id: str, transaction_id: str):
    """Supprime une transaction"""
    transaction = get_transaction(db, user_id, transaction_id)
    db.delete(transaction)
    db.commit()


# Settings
def get_or_create_settings(db: Session, user_id: str):
    """Récupère les préférences, créées avec les valeurs par défaut au premier accès"""
    settings = db.query(UserSettingsModel).filter(UserSettingsModel.user_id == user_id).first()
    if settings:
        return settings

    settings = UserSettingsModel(user_id=user_id, **DEFAULT_SETTINGS)
    db.add(settings)
    db.commit()
    db.refresh(settings)
    return settings


def upsert_settings(db: Session, user_id: str, settings_update: SettingsUpdate):
    """Met à jour les préférences; les champs absents sont conservés"""
    values = settings_update.model_dump(exclude_none=True)
    settings = db.query(UserSettingsModel).filter(UserSettingsModel.user_id == user_id).first()

    if settings is None:
        settings = UserSettingsModel(user_id=user_id, **{**DEFAULT_SETTINGS, **values})
        db.add(settings)
    else:
        for field, value in values.items():
            setattr(settings, field, value)

    db.commit()
    db.refresh(settings)
    return settings
