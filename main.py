import logging
from datetime import date
from functools import lru_cache
from typing import Optional

from fastapi import (
    BackgroundTasks,
    Depends,
    FastAPI,
    Header,
    HTTPException,
    Query,
    Request,
)
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth_tokens import bearer_token, issue_token, read_token
from config import get_settings
from database import engine, get_db
from google_auth import GoogleAuthClient, GoogleIdentity
from models import UserProfile
from notifications import (
    EmailSender,
    receipt_filename,
    render_receipt_pdf,
    send_payment_confirmation,
)
from payments import PaymentService, RazorpayClient
from profile_cache import ProfileCache
from receipt_ai import OpenAIChatClient, ReceiptAnalyzer
from schemas import (
    AdminPasswordIn,
    BudgetIn,
    BudgetOut,
    CategoryAnalysisIn,
    CategoryTypeIn,
    CategoryTypeOut,
    CreateOrderIn,
    ExpenseCategoryIn,
    ExpenseCategoryOut,
    ExpenseIn,
    ExpenseOut,
    ExpenseSubcategoryIn,
    ExpenseSubcategoryOut,
    GoalIn,
    GoalOut,
    GoogleCodeIn,
    GoogleCredentialIn,
    IncomeCategoryIn,
    IncomeCategoryOut,
    IncomeIn,
    IncomeOut,
    IncomeSubcategoryIn,
    IncomeSubcategoryOut,
    LoginIn,
    OnboardingIn,
    PaymentOut,
    ProfileUpdateIn,
    ReceiptTextIn,
    VerifyPaymentIn,
)
from services import (
    AccountService,
    AuthError,
    BudgetService,
    CategoryTypeService,
    ConflictError,
    ExpenseCategoryService,
    ExpenseService,
    GoalService,
    IncomeCategoryService,
    IncomeService,
    NotFoundError,
    PermissionDenied,
    ProfileService,
    UpstreamError,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()
app = FastAPI(title="Finance API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def envelope(data=None, message: Optional[str] = None, status_code: int = 200):
    body: dict[str, object] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def http_error(exc: ValueError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ConflictError):
        status_code = 409
    elif isinstance(exc, AuthError):
        status_code = 401
    elif isinstance(exc, PermissionDenied):
        status_code = 403
    else:
        status_code = 400
    return HTTPException(status_code=status_code, detail=str(exc))


def upstream_error(exc: UpstreamError, message: str) -> HTTPException:
    logger.exception(f"upstream_failed: message={message} detail={exc}")
    return HTTPException(status_code=500, detail=message)


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {"loc": (), "msg": "Invalid request", "type": ""}
    field = ".".join(
        str(part) for part in first["loc"] if part not in ("body", "query", "path")
    )
    ctx_error = (first.get("ctx") or {}).get("error")
    if first["type"] == "value_error" and ctx_error is not None:
        message = str(ctx_error)
    elif field:
        message = f"{field}: {first['msg']}"
    else:
        message = first["msg"]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": message, "error": field or None},
    )


@app.on_event("startup")
def startup_event():
    logger.info(
        f"api_started: database={engine.url.get_backend_name()} "
        f"cors_origins={len(settings.cors_origins)}"
    )


@lru_cache(maxsize=1)
def get_profile_cache() -> ProfileCache:
    return ProfileCache(get_settings().profile_cache_ttl_secs)


def get_google_client() -> GoogleAuthClient:
    return GoogleAuthClient()


def get_razorpay_client() -> RazorpayClient:
    return RazorpayClient()


def get_ai_client() -> OpenAIChatClient:
    return OpenAIChatClient()


def get_email_sender() -> EmailSender:
    return EmailSender()


def current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> UserProfile:
    token = bearer_token(authorization)
    claims = read_token(token) if token else None
    if not claims:
        raise HTTPException(status_code=401, detail="Authentication required")
    user = db.get(UserProfile, claims.user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


def require_admin(user: UserProfile = Depends(current_user)) -> UserProfile:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def auth_payload(user: UserProfile, picture: Optional[str] = None) -> dict[str, object]:
    return {
        "user": {
            "id": user.id,
            "email": user.email,
            "fullName": user.full_name,
            "picture": picture or user.picture_url,
            "onboardingCompleted": user.onboarding_completed,
            "provider": user.provider,
        },
        "token": issue_token(user.id, user.email, user.provider),
    }


# Health


@app.get("/health")
def health():
    return envelope({"status": "OK", "service": "finance-api"})


@app.get("/health/db")
def health_db(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.exception("health_db_failed")
        raise HTTPException(status_code=500, detail="Database unavailable") from exc
    return envelope({"status": "OK", "database": "connected"})


# Authentication


def _sign_in_with_google(
    identity: GoogleIdentity, db: Session, cache: ProfileCache
) -> dict[str, object]:
    user = AccountService(db, cache).upsert_google_profile(
        email=identity.email,
        full_name=identity.full_name,
        picture_url=identity.picture,
        google_id=identity.google_id,
        email_verified=identity.email_verified,
    )
    return auth_payload(user, picture=identity.picture)


@app.post("/auth/google")
def auth_google(
    payload: GoogleCredentialIn,
    db: Session = Depends(get_db),
    google: GoogleAuthClient = Depends(get_google_client),
    cache: ProfileCache = Depends(get_profile_cache),
):
    try:
        identity = google.verify_id_token(payload.credential)
        return envelope(_sign_in_with_google(identity, db, cache))
    except UpstreamError as exc:
        raise upstream_error(exc, "Google authentication failed") from exc
    except ValueError as exc:
        raise http_error(exc) from exc


@app.post("/auth/google-code")
def auth_google_code(
    payload: GoogleCodeIn,
    db: Session = Depends(get_db),
    google: GoogleAuthClient = Depends(get_google_client),
    cache: ProfileCache = Depends(get_profile_cache),
):
    try:
        identity = google.exchange_code(payload.code)
        return envelope(_sign_in_with_google(identity, db, cache))
    except UpstreamError as exc:
        raise upstream_error(exc, "Google authentication failed") from exc
    except ValueError as exc:
        raise http_error(exc) from exc


@app.post("/auth/login")
def auth_login(payload: LoginIn, db: Session = Depends(get_db)):
    try:
        user = AccountService(db).login(payload.email, payload.password)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(auth_payload(user))


# Category types


@app.get("/category-types")
def list_category_types(db: Session = Depends(get_db)):
    rows = CategoryTypeService(db).list_all()
    return envelope([CategoryTypeOut.model_validate(row) for row in rows])


@app.post("/category-types", dependencies=[Depends(require_admin)])
def create_category_type(payload: CategoryTypeIn, db: Session = Depends(get_db)):
    try:
        row = CategoryTypeService(db).create(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        CategoryTypeOut.model_validate(row),
        message="Category type created successfully",
        status_code=201,
    )


@app.put("/category-types/{type_id}", dependencies=[Depends(require_admin)])
def update_category_type(
    type_id: int, payload: CategoryTypeIn, db: Session = Depends(get_db)
):
    try:
        row = CategoryTypeService(db).update(type_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        CategoryTypeOut.model_validate(row),
        message="Category type updated successfully",
    )


@app.delete("/category-types/{type_id}", dependencies=[Depends(require_admin)])
def delete_category_type(type_id: int, db: Session = Depends(get_db)):
    try:
        CategoryTypeService(db).delete(type_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(message="Category type deleted successfully")


@app.get("/categories-with-types")
def categories_with_types(db: Session = Depends(get_db)):
    return envelope(CategoryTypeService(db).categories_with_types())


# Expense categories


@app.get("/expense-categories")
def list_expense_categories(db: Session = Depends(get_db)):
    rows = ExpenseCategoryService(db).list_active()
    return envelope([ExpenseCategoryOut.model_validate(row) for row in rows])


@app.post("/expense-categories", dependencies=[Depends(require_admin)])
def create_expense_category(payload: ExpenseCategoryIn, db: Session = Depends(get_db)):
    try:
        row = ExpenseCategoryService(db).create(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        ExpenseCategoryOut.model_validate(row),
        message="Expense category created successfully",
        status_code=201,
    )


@app.get("/expense-categories/by-name/{name}/subcategories")
def expense_subcategories_by_name(name: str, db: Session = Depends(get_db)):
    rows = ExpenseCategoryService(db).subcategories_by_name(name)
    return envelope([ExpenseSubcategoryOut.model_validate(row) for row in rows])


@app.put("/expense-categories/{category_id}", dependencies=[Depends(require_admin)])
def update_expense_category(
    category_id: int, payload: ExpenseCategoryIn, db: Session = Depends(get_db)
):
    try:
        row = ExpenseCategoryService(db).update(category_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        ExpenseCategoryOut.model_validate(row),
        message="Expense category updated successfully",
    )


@app.delete("/expense-categories/{category_id}", dependencies=[Depends(require_admin)])
def delete_expense_category(category_id: int, db: Session = Depends(get_db)):
    try:
        ExpenseCategoryService(db).deactivate(category_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(message="Expense category deleted successfully")


@app.get("/expense-categories/{category_id}/subcategories")
def list_expense_subcategories(category_id: int, db: Session = Depends(get_db)):
    try:
        rows = ExpenseCategoryService(db).subcategories(category_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope([ExpenseSubcategoryOut.model_validate(row) for row in rows])


@app.post(
    "/expense-categories/{category_id}/subcategories",
    dependencies=[Depends(require_admin)],
)
def add_expense_subcategory(
    category_id: int, payload: ExpenseSubcategoryIn, db: Session = Depends(get_db)
):
    try:
        rows = ExpenseCategoryService(db).add_subcategory(category_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        [ExpenseSubcategoryOut.model_validate(row) for row in rows],
        message="Subcategory added successfully",
        status_code=201,
    )


@app.put(
    "/expense-categories/{category_id}/subcategories/{name}",
    dependencies=[Depends(require_admin)],
)
def update_expense_subcategory(
    category_id: int,
    name: str,
    payload: ExpenseSubcategoryIn,
    db: Session = Depends(get_db),
):
    try:
        rows = ExpenseCategoryService(db).update_subcategory(category_id, name, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        [ExpenseSubcategoryOut.model_validate(row) for row in rows],
        message="Subcategory updated successfully",
    )


@app.delete(
    "/expense-categories/{category_id}/subcategories/{name}",
    dependencies=[Depends(require_admin)],
)
def delete_expense_subcategory(
    category_id: int, name: str, db: Session = Depends(get_db)
):
    try:
        rows = ExpenseCategoryService(db).delete_subcategory(category_id, name)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        [ExpenseSubcategoryOut.model_validate(row) for row in rows],
        message="Subcategory deleted successfully",
    )


# Income categories


@app.get("/income-categories")
def list_income_categories(db: Session = Depends(get_db)):
    rows = IncomeCategoryService(db).list_all()
    return envelope([IncomeCategoryOut.model_validate(row) for row in rows])


@app.post("/income-categories", dependencies=[Depends(require_admin)])
def create_income_category(payload: IncomeCategoryIn, db: Session = Depends(get_db)):
    try:
        row = IncomeCategoryService(db).create(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        IncomeCategoryOut.model_validate(row),
        message="Income category created successfully",
        status_code=201,
    )


@app.get("/income-categories/{category_id}/subcategories")
def list_income_subcategories(category_id: int, db: Session = Depends(get_db)):
    try:
        rows = IncomeCategoryService(db).subcategories(category_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope([IncomeSubcategoryOut.model_validate(row) for row in rows])


@app.put("/income-categories/{category_id}", dependencies=[Depends(require_admin)])
def update_income_category(
    category_id: int, payload: IncomeCategoryIn, db: Session = Depends(get_db)
):
    try:
        row = IncomeCategoryService(db).update(category_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        IncomeCategoryOut.model_validate(row),
        message="Income category updated successfully",
    )


@app.delete("/income-categories/{category_id}", dependencies=[Depends(require_admin)])
def delete_income_category(category_id: int, db: Session = Depends(get_db)):
    try:
        IncomeCategoryService(db).delete(category_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(message="Income category deleted successfully")


@app.post("/income-subcategories", dependencies=[Depends(require_admin)])
def create_income_subcategory(
    payload: IncomeSubcategoryIn, db: Session = Depends(get_db)
):
    try:
        row = IncomeCategoryService(db).create_subcategory(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        IncomeSubcategoryOut.model_validate(row),
        message="Income subcategory created successfully",
        status_code=201,
    )


@app.put("/income-subcategories/{subcategory_id}", dependencies=[Depends(require_admin)])
def update_income_subcategory(
    subcategory_id: int, payload: IncomeSubcategoryIn, db: Session = Depends(get_db)
):
    try:
        row = IncomeCategoryService(db).update_subcategory(subcategory_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        IncomeSubcategoryOut.model_validate(row),
        message="Income subcategory updated successfully",
    )


@app.delete(
    "/income-subcategories/{subcategory_id}", dependencies=[Depends(require_admin)]
)
def delete_income_subcategory(subcategory_id: int, db: Session = Depends(get_db)):
    try:
        IncomeCategoryService(db).delete_subcategory(subcategory_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(message="Income subcategory deleted successfully")


# Expenses and incomes


@app.get("/expenses")
def list_expenses(
    start: Optional[date] = None,
    end: Optional[date] = None,
    category_id: Optional[int] = None,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    rows = ExpenseService(db, user.id).list(start, end, category_id)
    return envelope([ExpenseOut.model_validate(row) for row in rows])


@app.post("/expenses")
def create_expense(
    payload: ExpenseIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        row = ExpenseService(db, user.id).create(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        ExpenseOut.model_validate(row),
        message="Expense created successfully",
        status_code=201,
    )


@app.get("/expenses/{expense_id}")
def get_expense(
    expense_id: int,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        row = ExpenseService(db, user.id).get(expense_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(ExpenseOut.model_validate(row))


@app.put("/expenses/{expense_id}")
def update_expense(
    expense_id: int,
    payload: ExpenseIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        row = ExpenseService(db, user.id).update(expense_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(ExpenseOut.model_validate(row), message="Expense updated successfully")


@app.delete("/expenses/{expense_id}")
def delete_expense(
    expense_id: int,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        ExpenseService(db, user.id).delete(expense_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(message="Expense deleted successfully")


@app.get("/incomes")
def list_incomes(
    start: Optional[date] = None,
    end: Optional[date] = None,
    category_id: Optional[int] = None,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    rows = IncomeService(db, user.id).list(start, end, category_id)
    return envelope([IncomeOut.model_validate(row) for row in rows])


@app.post("/incomes")
def create_income(
    payload: IncomeIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        row = IncomeService(db, user.id).create(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        IncomeOut.model_validate(row),
        message="Income created successfully",
        status_code=201,
    )


@app.get("/incomes/{income_id}")
def get_income(
    income_id: int,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        row = IncomeService(db, user.id).get(income_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(IncomeOut.model_validate(row))


@app.put("/incomes/{income_id}")
def update_income(
    income_id: int,
    payload: IncomeIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        row = IncomeService(db, user.id).update(income_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(IncomeOut.model_validate(row), message="Income updated successfully")


@app.delete("/incomes/{income_id}")
def delete_income(
    income_id: int,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        IncomeService(db, user.id).delete(income_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(message="Income deleted successfully")


# Budgets and goals


@app.get("/budgets")
def get_budget(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=3000),
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    row = BudgetService(db, user.id).get(month, year)
    return envelope(BudgetOut.model_validate(row) if row else None)


@app.put("/budgets")
def save_budget(
    payload: BudgetIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        row = BudgetService(db, user.id).upsert(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(BudgetOut.model_validate(row), message="Budget saved successfully")


@app.get("/goals")
def list_goals(user: UserProfile = Depends(current_user), db: Session = Depends(get_db)):
    rows = GoalService(db, user.id).list_all()
    return envelope([GoalOut.model_validate(row) for row in rows])


@app.post("/goals")
def create_goal(
    payload: GoalIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    row = GoalService(db, user.id).create(payload)
    return envelope(
        GoalOut.model_validate(row), message="Goal created successfully", status_code=201
    )


@app.put("/goals/{goal_id}")
def update_goal(
    goal_id: int,
    payload: GoalIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        row = GoalService(db, user.id).update(goal_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(GoalOut.model_validate(row), message="Goal updated successfully")


@app.delete("/goals/{goal_id}")
def delete_goal(
    goal_id: int,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        GoalService(db, user.id).delete(goal_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(message="Goal deleted successfully")


# Profile


def _profile_service(db: Session, cache: ProfileCache) -> ProfileService:
    return ProfileService(db, cache, get_settings().profile_lookup_timeout_secs)


@app.get("/profile")
def get_profile(
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
    cache: ProfileCache = Depends(get_profile_cache),
):
    try:
        profile = _profile_service(db, cache).get(user.id)
    except UpstreamError as exc:
        raise upstream_error(exc, "Failed to load profile") from exc
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(profile)


@app.put("/profile")
def update_profile(
    payload: ProfileUpdateIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
    cache: ProfileCache = Depends(get_profile_cache),
):
    try:
        profile = _profile_service(db, cache).update(user.id, payload)
    except UpstreamError as exc:
        raise upstream_error(exc, "Failed to update profile") from exc
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(profile, message="Profile updated successfully")


@app.post("/profile/onboarding")
def save_onboarding(
    payload: OnboardingIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
    cache: ProfileCache = Depends(get_profile_cache),
):
    try:
        profile = _profile_service(db, cache).save_onboarding(user.id, payload)
    except UpstreamError as exc:
        raise upstream_error(exc, "Failed to save onboarding data") from exc
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(profile, message="Onboarding completed successfully")


@app.get("/profile/onboarding-status")
def onboarding_status(
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
    cache: ProfileCache = Depends(get_profile_cache),
):
    try:
        status = _profile_service(db, cache).onboarding_status(user.id)
    except UpstreamError as exc:
        raise upstream_error(exc, "Failed to load onboarding status") from exc
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(status)


# Receipt and document analysis


@app.post("/ocr/analyze-receipt")
def analyze_receipt(
    payload: ReceiptTextIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
    ai: OpenAIChatClient = Depends(get_ai_client),
):
    try:
        result = ReceiptAnalyzer(db, ai).analyze_receipt(payload.extracted_text)
    except UpstreamError as exc:
        raise upstream_error(exc, "Receipt analysis failed") from exc
    return envelope(result, message="Receipt analyzed successfully")


@app.post("/ocr/analyze-category")
def analyze_category(
    payload: CategoryAnalysisIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
    ai: OpenAIChatClient = Depends(get_ai_client),
):
    try:
        result = ReceiptAnalyzer(db, ai).analyze_category(
            payload.extracted_text, payload.available_categories or []
        )
    except UpstreamError as exc:
        raise upstream_error(exc, "Category analysis failed") from exc
    return envelope(result, message="Category analyzed successfully")


@app.post("/ocr/analyze-income-document")
def analyze_income_document(
    payload: ReceiptTextIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
    ai: OpenAIChatClient = Depends(get_ai_client),
):
    try:
        result = ReceiptAnalyzer(db, ai).analyze_income_document(payload.extracted_text)
    except UpstreamError as exc:
        raise upstream_error(exc, "Income document analysis failed") from exc
    return envelope(result, message="Income document analyzed successfully")


# Payments


@app.post("/payments/create-order")
def create_payment_order(
    payload: CreateOrderIn,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
    razorpay: RazorpayClient = Depends(get_razorpay_client),
):
    try:
        payment, order = PaymentService(db, razorpay).create_order(user.id, payload)
    except UpstreamError as exc:
        raise upstream_error(exc, "Failed to create order") from exc
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        {
            "order": order,
            "payment": PaymentOut.model_validate(payment),
            "key_id": razorpay.key_id,
        },
        status_code=201,
    )


@app.post("/payments/verify")
def verify_payment(
    payload: VerifyPaymentIn,
    background_tasks: BackgroundTasks,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
    mailer: EmailSender = Depends(get_email_sender),
):
    service = PaymentService(db)
    try:
        payment = service.verify(user.id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    background_tasks.add_task(send_payment_confirmation, payment.id, mailer)
    return envelope(
        PaymentOut.model_validate(payment), message="Payment verified successfully"
    )


@app.post("/payments/webhook")
async def payments_webhook(request: Request, db: Session = Depends(get_db)):
    raw_body = await request.body()
    signature = request.headers.get("x-razorpay-signature")
    try:
        processed = PaymentService(db).handle_webhook(raw_body, signature)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope({"processed": processed})


@app.get("/payments/{payment_id}/receipt.pdf")
def payment_receipt(
    payment_id: int,
    user: UserProfile = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        payment = PaymentService(db).get_captured(user.id, payment_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    try:
        pdf_bytes = render_receipt_pdf(payment, user)
    except Exception as exc:
        logger.exception("Error generating PDF receipt")
        raise HTTPException(status_code=500, detail="Failed to generate receipt") from exc
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{receipt_filename(payment)}"'
        },
    )


# Admin


@app.post("/admin/password", dependencies=[Depends(require_admin)])
def set_admin_password(
    payload: AdminPasswordIn,
    db: Session = Depends(get_db),
    cache: ProfileCache = Depends(get_profile_cache),
):
    try:
        AccountService(db, cache).set_password(payload.email, payload.password)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(message="Password updated successfully")


@app.get("/admin/password-info/{email}", dependencies=[Depends(require_admin)])
def admin_password_info(email: str, db: Session = Depends(get_db)):
    try:
        info = AccountService(db).password_info(email)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(info)
