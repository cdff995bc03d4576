import logging
from contextlib import asynccontextmanager
from typing import Optional

from bson.errors import BSONError
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pymongo import MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from auth import (
    AuthError,
    Identity,
    can_manage_user,
    get_settings,
    hash_password,
    issue_token,
    require_user,
    verify_password,
)
from config import Settings
from database import PROBLEMS, USERS, connect, create_document, ensure_indexes, get_db, get_documents, oid
from schemas import Credentials, Problem, ProblemCreate, ProfileUpdate, User

logger = logging.getLogger("problemtracker")

router = APIRouter()


# ---------- Error handlers ----------

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    seen = set()
    for error in exc.errors():
        loc = [str(part) for part in error["loc"]]
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        field = loc[0] if loc else "body"
        if field in seen:
            continue
        seen.add(field)
        errors.append({"field": field, "message": error["msg"]})
    logger.warning("Validation error for %s: %s", request.url.path, [e["field"] for e in errors])
    return JSONResponse(status_code=400, content={"message": "Validation error", "errors": errors})


async def auth_exception_handler(request: Request, exc: AuthError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return Response(status_code=exc.status_code, headers=headers)


# ---------- Basic health/test ----------

@router.get("/")
def root():
    return {"message": "Problem Tracker API running"}

@router.get("/test")
def test_database(request: Request):
    db = getattr(request.app.state, "db", None)
    resp = {
        "backend": "running",
        "database": "connected" if db is not None else "not_configured",
        "collections": [],
    }
    try:
        if db is not None:
            resp["collections"] = db.list_collection_names()
    except PyMongoError as e:
        resp["database"] = f"error: {str(e)[:120]}"
    return resp


# ---------- Problems ----------

@router.post("/problems", status_code=201)
def create_problem(body: ProblemCreate, _: Identity = Depends(require_user), db: Database = Depends(get_db)):
    try:
        problem_id = create_document(db, PROBLEMS, Problem(**body.model_dump()))
    except (PyMongoError, BSONError, OverflowError):
        logger.exception("Error creating problem")
        raise HTTPException(status_code=500, detail="Error creating problem")
    return {"message": "Problem created successfully", "id": problem_id}

@router.get("/problems")
def list_problems(tag: Optional[str] = None, db: Database = Depends(get_db)):
    query = {"tags": {"$in": [tag]}} if tag else {}
    try:
        return get_documents(db, PROBLEMS, query)
    except PyMongoError:
        logger.exception("Error fetching problems")
        raise HTTPException(status_code=500, detail="Error fetching problems")

@router.patch("/problems/{problem_id}/solve")
def solve_problem(problem_id: str, _: Identity = Depends(require_user), db: Database = Depends(get_db)):
    _id = oid(problem_id)
    try:
        problem = None
        if _id is not None:
            problem = db[PROBLEMS].find_one_and_update(
                {"_id": _id},
                {"$set": {"solved": True}},
                return_document=ReturnDocument.AFTER,
            )
    except PyMongoError:
        logger.exception("Error marking problem %s as solved", problem_id)
        raise HTTPException(status_code=500, detail="Error marking problem as solved")
    if not problem:
        raise HTTPException(status_code=404, detail="Problem not found")
    return {"message": "Problem marked as solved"}

@router.delete("/problems/{problem_id}")
def delete_problem(problem_id: str, _: Identity = Depends(require_user), db: Database = Depends(get_db)):
    _id = oid(problem_id)
    try:
        problem = db[PROBLEMS].find_one_and_delete({"_id": _id}) if _id is not None else None
    except PyMongoError:
        logger.exception("Error deleting problem %s", problem_id)
        raise HTTPException(status_code=500, detail="Error deleting problem")
    if not problem:
        raise HTTPException(status_code=404, detail="Problem not found")
    return {"message": "Problem deleted successfully"}


# ---------- Users ----------

@router.post("/register", status_code=201)
def register(body: Credentials, db: Database = Depends(get_db)):
    users = db[USERS]
    try:
        if users.find_one({"username": body.username}):
            raise HTTPException(status_code=400, detail="Username already exists")
        create_document(db, USERS, User(username=body.username, password=hash_password(body.password)))
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Username already exists")
    except PyMongoError:
        logger.exception("Error creating user")
        raise HTTPException(status_code=500, detail="Error creating user")
    logger.info("Registered user %s", body.username)
    return {"message": "User created successfully"}

@router.post("/login")
def login(body: Credentials, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    try:
        user = db[USERS].find_one({"username": body.username})
    except PyMongoError:
        logger.exception("Error logging in")
        raise HTTPException(status_code=500, detail="Error logging in")
    # Same response for unknown users and wrong passwords.
    if not user or not verify_password(body.password, user.get("password", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = issue_token(settings, str(user["_id"]), user.get("isAdmin", False))
    return {"token": token}

@router.delete("/users/{user_id}")
def delete_user(
    user_id: str,
    identity: Identity = Depends(require_user),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not can_manage_user(settings, identity, user_id):
        raise AuthError(403)
    _id = oid(user_id)
    try:
        user = db[USERS].find_one_and_delete({"_id": _id}) if _id is not None else None
    except PyMongoError:
        logger.exception("Error deleting user %s", user_id)
        raise HTTPException(status_code=500, detail="Error deleting user")
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User deleted successfully"}

@router.patch("/users/{user_id}")
def update_user(
    user_id: str,
    body: ProfileUpdate,
    identity: Identity = Depends(require_user),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not can_manage_user(settings, identity, user_id):
        raise AuthError(403)
    _id = oid(user_id)

    changes = {}
    if body.username:
        changes["username"] = body.username
    if body.password:
        changes["password"] = hash_password(body.password)

    users = db[USERS]
    try:
        user = users.find_one({"_id": _id}) if _id is not None else None
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        if "username" in changes and users.find_one({"username": changes["username"], "_id": {"$ne": _id}}):
            raise HTTPException(status_code=400, detail="Username already exists")
        if changes:
            users.update_one({"_id": _id}, {"$set": changes})
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Username already exists")
    except PyMongoError:
        logger.exception("Error updating user %s", user_id)
        raise HTTPException(status_code=500, detail="Error updating user profile")
    return {"message": "User profile updated"}


# ---------- Stats ----------

@router.get("/stats")
def stats(db: Database = Depends(get_db)):
    try:
        return {
            "totalUsers": db[USERS].count_documents({}),
            "totalProblems": db[PROBLEMS].count_documents({}),
            "solvedProblemsCount": db[PROBLEMS].count_documents({"solved": True}),
            "unsolvedProblemsCount": db[PROBLEMS].count_documents({"solved": False}),
        }
    except PyMongoError:
        logger.exception("Error fetching site statistics")
        raise HTTPException(status_code=500, detail="Error fetching site statistics")


# ---------- App ----------

def create_app(settings: Optional[Settings] = None, client: Optional[MongoClient] = None) -> FastAPI:
    """Build the API. Settings are read from the environment at startup when not given."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings or Settings.from_env()
        mongo = client or connect(app.state.settings)
        app.state.db = mongo[app.state.settings.database_name]
        try:
            ensure_indexes(app.state.db)
        except PyMongoError as e:
            # Do not crash startup if the database is unreachable; routes report 500.
            logger.error("Creating indexes failed: %s", str(e))
        logger.info("Problem Tracker API started")
        yield
        mongo.close()
        logger.info("Problem Tracker API stopped")

    app = FastAPI(title="Problem Tracker API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(AuthError, auth_exception_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    port = Settings.from_env().port
    uvicorn.run(app, host="0.0.0.0", port=port)
