from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import stripe
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
from pymongo.database import Database
from pymongo.errors import PyMongoError

from access import AdminCheck, get_admin_check
from config import Settings, get_settings
from database import (
    close_db,
    create_document,
    delete_document,
    get_db,
    get_document,
    get_documents,
    init_db,
    now_utc,
    parse_object_id,
    serialize_document,
    update_document,
)
from errors import register_error_handlers
from gateway import GatewayNotConfigured, create_payment_intent, to_minor_units
from logger import configure_logging, get_logger
from schemas import Agreement, Announcement, Coupon, Payment, Unit, User

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        init_db(settings.database_url, settings.database_name)
    except Exception:
        logger.exception("Could not connect to MongoDB, refusing to start")
        raise
    yield
    close_db()


app = FastAPI(title="EstateEase API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# ---------- Utility ----------

def as_utc(value) -> Optional[datetime]:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        # naive values in the store are UTC
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coupon_is_valid(coupon: dict) -> bool:
    expiration = as_utc(coupon.get("expiration"))
    return expiration is not None and now_utc() < expiration

# ---------- Health ----------

@app.get("/", response_class=PlainTextResponse)
def read_root():
    return "EstateEase server is running"

# ---------- Apartments ----------

@app.get("/apartments")
def list_apartments(db: Database = Depends(get_db)):
    return get_documents(db, "apartments")

# ---------- Agreements ----------

class AgreementIn(BaseModel):
    userName: str
    userEmail: str
    floorNo: Unit
    blockName: str
    apartmentNo: Unit
    rent: float


@app.post("/agreements", status_code=201)
def create_agreement(
    payload: AgreementIn,
    db: Database = Depends(get_db),
    is_admin: AdminCheck = Depends(get_admin_check),
):
    if is_admin(db, payload.userEmail):
        raise HTTPException(status_code=403, detail="Admins cannot request an agreement.")
    if get_document(db, "agreements", {"userEmail": payload.userEmail}):
        raise HTTPException(status_code=400, detail="User already has an agreement.")
    agreement = Agreement(**payload.model_dump(), status="pending", createdAt=now_utc())
    agreement_id = create_document(db, "agreements", agreement)
    logger.info("Agreement %s requested by %s", agreement_id, payload.userEmail)
    return {"message": "Agreement created successfully", "agreementId": agreement_id}


@app.get("/agreements")
def list_pending_agreements(db: Database = Depends(get_db)):
    return get_documents(db, "agreements", {"status": "pending"})


@app.get("/agreements/{email}")
def get_agreement(email: str, db: Database = Depends(get_db)):
    agreement = get_document(db, "agreements", {"userEmail": email})
    if not agreement:
        raise HTTPException(status_code=404, detail="Agreement not found")
    return serialize_document(agreement)


class AgreementStatusIn(BaseModel):
    status: Optional[str] = None
    role: Optional[str] = None


@app.put("/agreements/{agreement_id}/update")
def update_agreement_status(agreement_id: str, payload: AgreementStatusIn, db: Database = Depends(get_db)):
    if payload.status not in ("accepted", "rejected"):
        raise HTTPException(status_code=400, detail="Status must be 'accepted' or 'rejected'.")
    oid = parse_object_id(agreement_id)
    agreement = get_document(db, "agreements", {"_id": oid})
    if not agreement:
        raise HTTPException(status_code=404, detail="Agreement not found")

    current = agreement.get("status", "pending")
    if current != "pending":
        # an accepted agreement may be re-accepted to retry the role grant
        if not (current == "accepted" and payload.status == "accepted"):
            raise HTTPException(status_code=400, detail=f"Agreement is already {current}.")
    else:
        result = update_document(
            db, "agreements", {"_id": oid, "status": "pending"}, {"$set": {"status": payload.status}}
        )
        if result.matched_count == 0:
            raise HTTPException(status_code=400, detail="Agreement is no longer pending.")
    logger.info("Agreement %s set to %s", agreement_id, payload.status)

    role_granted = False
    if payload.status == "accepted" and payload.role:
        email = agreement.get("userEmail")
        try:
            result = update_document(db, "users", {"email": email}, {"$set": {"role": payload.role}})
        except PyMongoError:
            logger.error(
                "Agreement %s is accepted but role %r was not granted to %s",
                agreement_id, payload.role, email,
            )
            return JSONResponse(
                status_code=500,
                content={
                    "message": "Agreement status updated but role assignment failed.",
                    "status": payload.status,
                    "roleGranted": False,
                },
            )
        role_granted = result.matched_count > 0
        if not role_granted:
            logger.warning("No user record for %s, role %r not granted", email, payload.role)

    return {
        "message": f"Agreement {payload.status}",
        "status": payload.status,
        "roleGranted": role_granted,
    }

# ---------- Payments ----------

class PaymentIn(BaseModel):
    userEmail: str
    floorNo: Unit
    blockName: str
    apartmentNo: Unit
    originalRent: float
    finalRent: float
    discount: float = 0
    month: str


@app.post("/payments", status_code=201)
def create_payment(payload: PaymentIn, db: Database = Depends(get_db)):
    payment = Payment(**payload.model_dump(), paymentDate=now_utc())
    payment_id = create_document(db, "payments", payment)
    return {"insertedId": payment_id}


@app.get("/payments/{email}")
def list_payments(email: str, db: Database = Depends(get_db)):
    return get_documents(db, "payments", {"userEmail": email})


class PaymentIntentIn(BaseModel):
    price: float = Field(gt=0)


@app.post("/create-payment-intent")
def create_intent(payload: PaymentIntentIn, settings: Settings = Depends(get_settings)):
    if to_minor_units(payload.price) < 1:
        raise HTTPException(status_code=400, detail="Price must be at least one cent.")
    try:
        client_secret = create_payment_intent(payload.price, settings.stripe_secret_key)
    except GatewayNotConfigured as e:
        logger.error("Payment intent refused: %s", e)
        raise HTTPException(status_code=500, detail="Payment gateway is not configured.")
    except stripe.StripeError as e:
        logger.error("Stripe error creating payment intent: %s", e)
        raise HTTPException(status_code=500, detail="Payment gateway error.")
    return {"clientSecret": client_secret}

# ---------- Coupons ----------

class CouponIn(BaseModel):
    code: str
    discount: float = Field(ge=0)
    expiration: datetime
    description: Optional[str] = None


class CouponUpdateIn(BaseModel):
    code: Optional[str] = None
    discount: Optional[float] = Field(None, ge=0)
    expiration: Optional[datetime] = None
    description: Optional[str] = None


REQUIRED_COUPON_FIELDS = ("code", "discount", "expiration")


def ensure_code_is_free(db: Database, code: str, coupon_id=None):
    query = {"code": code}
    if coupon_id is not None:
        query["_id"] = {"$ne": coupon_id}
    if get_document(db, "coupons", query):
        raise HTTPException(status_code=400, detail="Coupon code already exists.")


@app.get("/coupons")
def list_coupons(db: Database = Depends(get_db)):
    return get_documents(db, "coupons")


@app.get("/coupons/{code}")
def get_coupon(code: str, db: Database = Depends(get_db)):
    # older data may hold several coupons under one code
    valid = [c for c in get_documents(db, "coupons", {"code": code}) if coupon_is_valid(c)]
    if not valid:
        raise HTTPException(status_code=404, detail="Invalid or expired coupon")
    return valid[0]


@app.post("/coupons", status_code=201)
def create_coupon(payload: CouponIn, db: Database = Depends(get_db)):
    ensure_code_is_free(db, payload.code)
    coupon = Coupon(**payload.model_dump())
    coupon.expiration = as_utc(coupon.expiration)
    coupon_id = create_document(db, "coupons", coupon)
    return {"insertedId": coupon_id}


@app.put("/coupons/{coupon_id}")
def update_coupon(coupon_id: str, payload: CouponUpdateIn, db: Database = Depends(get_db)):
    oid = parse_object_id(coupon_id)
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No coupon fields to update")
    cleared = [name for name in REQUIRED_COUPON_FIELDS if name in fields and fields[name] is None]
    if cleared:
        raise HTTPException(status_code=400, detail=f"Coupon fields cannot be null: {', '.join(cleared)}")
    if "code" in fields:
        ensure_code_is_free(db, fields["code"], oid)
    if "expiration" in fields:
        fields["expiration"] = as_utc(fields["expiration"])
    result = update_document(db, "coupons", {"_id": oid}, {"$set": fields})
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return {"message": "Coupon updated", "modifiedCount": result.modified_count}


@app.delete("/coupons/{coupon_id}")
def delete_coupon(coupon_id: str, db: Database = Depends(get_db)):
    deleted = delete_document(db, "coupons", {"_id": parse_object_id(coupon_id)})
    if not deleted:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return {"message": "Coupon deleted", "deletedCount": deleted}

# ---------- Users ----------

class UserIn(BaseModel):
    email: str
    displayName: Optional[str] = None
    lastLogin: Optional[str] = None
    role: Optional[str] = None


class RoleIn(BaseModel):
    role: Optional[str] = None


@app.post("/users")
def upsert_user(payload: UserIn, db: Database = Depends(get_db)):
    user = User(**payload.model_dump(exclude={"role"}), role=payload.role or "user")
    result = update_document(
        db,
        "users",
        {"email": user.email},
        {
            "$set": {"lastLogin": user.lastLogin},
            "$setOnInsert": user.model_dump(exclude={"email", "lastLogin"}),
        },
        upsert=True,
    )
    if result.upserted_id is None:
        return {"message": "User already exists", "insertedId": None}
    logger.info("Created user %s", user.email)
    return JSONResponse(
        status_code=201,
        content={"message": "User created", "insertedId": str(result.upserted_id)},
    )


@app.get("/users")
def list_users(db: Database = Depends(get_db)):
    return get_documents(db, "users")


@app.get("/users/{email}")
def get_user(email: str, db: Database = Depends(get_db)):
    user = get_document(db, "users", {"email": email})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return serialize_document(user)


@app.put("/users/{user_id}")
def update_user_role(user_id: str, payload: RoleIn, db: Database = Depends(get_db)):
    if not payload.role:
        raise HTTPException(status_code=400, detail="Role is required")
    result = update_document(db, "users", {"_id": parse_object_id(user_id)}, {"$set": {"role": payload.role}})
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User role updated", "modifiedCount": result.modified_count}

# ---------- Announcements ----------

class AnnouncementIn(BaseModel):
    title: str
    description: str


@app.post("/announcements", status_code=201)
def create_announcement(payload: AnnouncementIn, db: Database = Depends(get_db)):
    announcement = Announcement(**payload.model_dump(), createdAt=now_utc())
    announcement_id = create_document(db, "announcements", announcement)
    return {"insertedId": announcement_id}


@app.get("/announcements")
def list_announcements(db: Database = Depends(get_db)):
    return get_documents(db, "announcements")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
