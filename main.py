from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from sqlalchemy.orm import Session
from typing import Optional
import uvicorn
from datetime import datetime
import os
import logging
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

from services.analysis_service import AnalysisService
from services.auth_service import AuthenticatedUser, get_current_user
from database.database import SessionLocal, init_db, get_db
from database.crud import (
    delete_expired_auth_sessions, upsert_user,
    get_categories, create_category, update_category, delete_category,
    get_budgets, upsert_budget, update_budget, delete_budget,
    get_transactions, get_transactions_by_month,
    create_transaction, update_transaction, delete_transaction,
    get_or_create_settings, upsert_settings
)
from models.budget import BudgetCreate, BudgetUpdate
from models.category import CategoryCreate, CategoryUpdate
from models.settings import SettingsUpdate
from models.transaction import TransactionCreate, TransactionFilters, TransactionUpdate
from models.user import UserUpsert

INTERNAL_ERROR = "Internal Server Error"


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    db = SessionLocal()
    try:
        count = delete_expired_auth_sessions(db)
    finally:
        db.close()
    logger.info(f"Base de données initialisée, {count} session(s) expirée(s) supprimée(s)")
    yield


app = FastAPI(title="Budget Tracker API", version="1.0.0", lifespan=lifespan)

# CORS middleware
cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

analysis_service = AnalysisService()


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Pas de distinction entre erreur client et erreur serveur
    logger.error(f"Requête invalide sur {request.url.path}: {exc.errors()}")
    return JSONResponse({"error": INTERNAL_ERROR}, status_code=500)


def _serialize_category(c):
    return {
        'id': c.id,
        'name': c.name,
        'type': c.type,
        'userId': c.user_id,
        'createdAt': c.created_at.isoformat() if c.created_at else None,
        'updatedAt': c.updated_at.isoformat() if c.updated_at else None
    }


def _serialize_budget(b):
    return {
        'id': b.id,
        'limit': b.limit,
        'month': b.month,
        'year': b.year,
        'categoryId': b.category_id,
        'userId': b.user_id,
        'category': _serialize_category(b.category),
        'createdAt': b.created_at.isoformat() if b.created_at else None,
        'updatedAt': b.updated_at.isoformat() if b.updated_at else None
    }


def _serialize_transaction(t):
    return {
        'id': t.id,
        'type': t.type,
        'amount': t.amount,
        'description': t.description,
        'date': t.date.isoformat(),
        'categoryId': t.category_id,
        'userId': t.user_id,
        'category': _serialize_category(t.category),
        'createdAt': t.created_at.isoformat() if t.created_at else None,
        'updatedAt': t.updated_at.isoformat() if t.updated_at else None
    }


def _serialize_settings(s):
    return {
        'id': s.id,
        'userId': s.user_id,
        'theme': s.theme,
        'notifications': s.notifications,
        'autoSave': s.auto_save,
        'createdAt': s.created_at.isoformat() if s.created_at else None,
        'updatedAt': s.updated_at.isoformat() if s.updated_at else None
    }


def _serialize_user(u):
    return {
        'id': u.id,
        'email': u.email,
        'name': u.name,
        'createdAt': u.created_at.isoformat() if u.created_at else None,
        'updatedAt': u.updated_at.isoformat() if u.updated_at else None
    }


def _analysis_rows(transactions):
    """Convertit les transactions au format attendu par l'analyse"""
    return [{
        'type': t.type,
        'amount': t.amount,
        'date': t.date,
        'category_id': t.category_id,
        'category': t.category.name
    } for t in transactions]


def _budget_rows(budgets):
    return [{
        'id': b.id,
        'category_id': b.category_id,
        'category': b.category.name,
        'limit': b.limit,
        'month': b.month,
        'year': b.year
    } for b in budgets]


def _current_period(month: Optional[int] = None, year: Optional[int] = None):
    now = datetime.now()
    return month or now.month, year or now.year


@app.get("/")
async def root():
    return {"message": "Budget Tracker API"}


@app.get("/health")
async def health():
    return {"status": "ok"}


# Users
@app.post("/api/users")
def upsert_user_endpoint(
    user: UserUpsert,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Crée ou met à jour l'utilisateur (clé: email)
    """
    try:
        db_user = upsert_user(db, current_user.id, user)
        return _serialize_user(db_user)
    except Exception as e:
        logger.error(f"Erreur lors de la création/mise à jour de l'utilisateur: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


# Categories
@app.get("/api/categories")
def get_categories_endpoint(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Récupère les catégories de l'utilisateur, triées par nom
    """
    try:
        return [_serialize_category(c) for c in get_categories(db, current_user.id)]
    except Exception as e:
        logger.error(f"Erreur lors de la récupération des catégories: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@app.post("/api/categories")
def create_category_endpoint(
    category: CategoryCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        db_category = create_category(db, current_user.id, category)
        logger.info(f"Catégorie {db_category.id} créée")
        return _serialize_category(db_category)
    except Exception as e:
        logger.error(f"Erreur lors de la création de la catégorie: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@app.put("/api/categories/{category_id}")
def update_category_endpoint(
    category_id: str,
    category_update: CategoryUpdate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Renomme une catégorie
    """
    try:
        return _serialize_category(update_category(db, current_user.id, category_id, category_update))
    except Exception as e:
        logger.error(f"Erreur lors de la mise à jour de la catégorie: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@app.delete("/api/categories/{category_id}")
def delete_category_endpoint(
    category_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Supprime une catégorie et ses budgets
    """
    try:
        delete_category(db, current_user.id, category_id)
        logger.info(f"Catégorie {category_id} supprimée")
        return {"success": True}
    except Exception as e:
        logger.error(f"Erreur lors de la suppression de la catégorie: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


# Budget endpoints
@app.get("/api/budgets")
def get_budgets_endpoint(
    month: Optional[int] = None,
    year: Optional[int] = None,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Récupère les budgets du mois courant, ou du mois/année demandés
    """
    try:
        month, year = _current_period(month, year)
        return [_serialize_budget(b) for b in get_budgets(db, current_user.id, month, year)]
    except Exception as e:
        logger.error(f"Erreur lors de la récupération des budgets: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@app.post("/api/budgets")
def upsert_budget_endpoint(
    budget: BudgetCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Crée ou met à jour le budget d'une catégorie pour le mois
    """
    try:
        month, year = _current_period(budget.month, budget.year)
        return _serialize_budget(upsert_budget(db, current_user.id, budget, month, year))
    except Exception as e:
        logger.error(f"Erreur lors de la création/mise à jour du budget: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@app.get("/api/budgets/summary")
def get_budgets_summary(
    month: Optional[int] = None,
    year: Optional[int] = None,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Récupère un résumé des budgets avec les dépenses réelles et le reste
    """
    try:
        month, year = _current_period(month, year)
        budgets = get_budgets(db, current_user.id, month, year)
        transactions = get_transactions_by_month(db, current_user.id, month, year)

        return {
            "month": month,
            "year": year,
            "summary": analysis_service.budget_progress(_budget_rows(budgets), _analysis_rows(transactions))
        }
    except Exception as e:
        logger.error(f"Erreur lors du calcul du résumé des budgets: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@app.put("/api/budgets/{budget_id}")
def update_budget_endpoint(
    budget_id: str,
    budget_update: BudgetUpdate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Met à jour la limite d'un budget
    """
    try:
        return _serialize_budget(update_budget(db, current_user.id, budget_id, budget_update))
    except Exception as e:
        logger.error(f"Erreur lors de la mise à jour du budget: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@app.delete("/api/budgets/{budget_id}")
def delete_budget_endpoint(
    budget_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        delete_budget(db, current_user.id, budget_id)
        return {"success": True}
    except Exception as e:
        logger.error(f"Erreur lors de la suppression du budget: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


# Transactions
@app.get("/api/transactions")
def get_transactions_endpoint(
    type: Optional[str] = None,
    category_id: Optional[str] = Query(None, alias="categoryId"),
    search: Optional[str] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Récupère les transactions, les plus récentes d'abord, avec filtres optionnels
    """
    try:
        filters = TransactionFilters(
            type=type,
            category_id=category_id,
            search=search,
            month=month,
            year=year,
            start_date=start_date,
            end_date=end_date
        )
        return [_serialize_transaction(t) for t in get_transactions(db, current_user.id, filters)]
    except Exception as e:
        logger.error(f"Erreur lors de la récupération des transactions: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@app.post("/api/transactions")
def create_transaction_endpoint(
    transaction: TransactionCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        db_transaction = create_transaction(db, current_user.id, transaction)
        logger.info(f"Transaction {db_transaction.id} créée")
        return _serialize_transaction(db_transaction)
    except Exception as e:
        logger.error(f"Erreur lors de la création de la transaction: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@app.put("/api/transactions/{transaction_id}")
def update_transaction_endpoint(
    transaction_id: str,
    transaction_update: TransactionUpdate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Met à jour une transaction
    """
    try:
        return _serialize_transaction(update_transaction(db, current_user.id, transaction_id, transaction_update))
    except Exception as e:
        logger.error(f"Erreur lors de la mise à jour de la transaction: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction_endpoint(
    transaction_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Supprime une transaction spécifique
    """
    try:
        delete_transaction(db, current_user.id, transaction_id)
        logger.info(f"Transaction {transaction_id} supprimée")
        return {"success": True}
    except Exception as e:
        logger.error(f"Erreur lors de la suppression de la transaction: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


# Settings
@app.get("/api/settings")
def get_settings_endpoint(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Récupère les préférences, créées avec les valeurs par défaut si besoin
    """
    try:
        return _serialize_settings(get_or_create_settings(db, current_user.id))
    except Exception as e:
        logger.error(f"Erreur lors de la récupération des préférences: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@app.api_route("/api/settings", methods=["POST", "PUT"])
def upsert_settings_endpoint(
    settings_update: SettingsUpdate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return _serialize_settings(upsert_settings(db, current_user.id, settings_update))
    except Exception as e:
        logger.error(f"Erreur lors de la mise à jour des préférences: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


# Analysis
@app.get("/api/dashboard")
def get_dashboard(
    month: Optional[int] = None,
    year: Optional[int] = None,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Totaux du mois, répartition des dépenses par catégorie et suivi des budgets
    """
    try:
        month, year = _current_period(month, year)
        transactions = get_transactions_by_month(db, current_user.id, month, year)
        budgets = get_budgets(db, current_user.id, month, year)
        return analysis_service.dashboard(_analysis_rows(transactions), _budget_rows(budgets), month, year)
    except Exception as e:
        logger.error(f"Erreur lors du calcul du tableau de bord: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@app.get("/api/statistics")
def get_statistics(
    year: Optional[int] = None,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Statistiques annuelles et conseils
    """
    try:
        _, year = _current_period(None, year)
        transactions = get_transactions(db, current_user.id)
        return analysis_service.yearly_statistics(_analysis_rows(transactions), year)
    except Exception as e:
        logger.error(f"Erreur lors du calcul des statistiques: {str(e)}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


if __name__ == "__main__":
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
