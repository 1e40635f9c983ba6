import logging
import os
from typing import List, Optional

import uvicorn
from fastapi import BackgroundTasks, Depends, FastAPI, Header, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

import auth
import models
import reports
from database import engine, get_db, init_default_admin, wait_for_db
from errors import CafeError
from image_host import image_host
from menu_service import MenuService
from order_service import OrderService
from redis_client import rate_limit, redis_client
from schemas import (
    AvailabilityUpdate,
    ClearOrdersResponse,
    ImageUploadResponse,
    MenuItemCreate,
    MenuItemResponse,
    MenuItemUpdate,
    OrderCreate,
    OrderResponse,
    OrderStatusUpdate,
    PaymentStatusUpdate,
    RegisterRequest,
    SalesReportResponse,
    UnpaidReportResponse,
    UserLogin,
    UserResponse,
    UserSave,
)
from user_service import UserService, user_to_response

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger("CafeAPI")

app = FastAPI(title="Shega Cafe API")

origins = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost,http://localhost:3000,http://127.0.0.1:3000,http://localhost:8080",
    ).split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ORDER_RATE_LIMIT = int(os.getenv("RATE_LIMIT_ORDERS", "20"))
RATE_LIMIT_WINDOW = int(os.getenv("RATE_LIMIT_WINDOW", "60"))


@app.on_event("startup")
def startup_event():
    if wait_for_db():
        try:
            logger.info("Creating database tables...")
            models.Base.metadata.create_all(bind=engine)
            init_default_admin()
            logger.info("Database initialised")
        except Exception as e:
            logger.error(f"Error while initialising the database: {e}")
    else:
        logger.error("Database did not become available during startup")

    if redis_client.is_available():
        logger.info("Redis available, rate limiting enabled")
    else:
        logger.warning("Redis unavailable, rate limiting disabled")


@app.exception_handler(CafeError)
async def cafe_error_handler(request: Request, exc: CafeError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = str(error.get("msg", "Invalid value")).replace("Value error, ", "")
        messages.append(f"{field}: {message}" if field else message)
    return JSONResponse(status_code=400, content={"detail": "; ".join(messages) or "Invalid request"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unexpected error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


async def get_current_user(authorization: Optional[str] = Header(None), db: Session = Depends(get_db)):
    """The logged-in user, or None for guests. A bad token is still an error."""
    if not authorization:
        return None
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = auth.user_from_token(db, authorization[len("Bearer "):])
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


def get_image_host():
    return image_host


@app.get("/")
def read_root():
    return {"message": "Shega Cafe API is working!"}


@app.get("/health")
def health_check():
    return {"status": "ok", "message": "API is running", "redis_available": redis_client.is_available()}


# ---------- accounts ----------

@app.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    return UserService(db).register(data)


@app.post("/login", dependencies=[Depends(rate_limit(10, RATE_LIMIT_WINDOW, "login"))])
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    user = UserService(db).authenticate(credentials.email, credentials.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect email or password")

    return {
        "access_token": auth.create_user_token(user),
        "token_type": "bearer",
        "user": user_to_response(user).dict(),
    }


@app.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: Optional[models.User] = Depends(get_current_user)):
    if current_user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_to_response(current_user)


@app.get("/users", response_model=List[UserResponse])
def get_users(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return UserService(db).list_users(current_user)


@app.post("/users", response_model=UserResponse)
def save_user(data: UserSave, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return UserService(db).save_user(current_user, data)


@app.delete("/users/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    UserService(db).delete_user(current_user, user_id)
    return {"message": "User deleted successfully"}


# ---------- menu ----------

def get_menu_service(background_tasks: BackgroundTasks, db: Session = Depends(get_db),
                     host=Depends(get_image_host)) -> MenuService:
    return MenuService(db, host, defer=background_tasks.add_task)


@app.get("/menu", response_model=List[MenuItemResponse])
def get_menu(menu: MenuService = Depends(get_menu_service), current_user=Depends(get_current_user)):
    return menu.get_menu_items(current_user)


@app.post("/menu/images", response_model=ImageUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_menu_image(request: Request, filename: str = "menu-item",
                            menu: MenuService = Depends(get_menu_service),
                            current_user=Depends(get_current_user)):
    content = await request.body()
    if not content:
        raise HTTPException(status_code=400, detail="Image body is empty")
    content_type = request.headers.get("content-type", "application/octet-stream")
    return menu.upload_image(current_user, filename, content, content_type)


@app.get("/menu/{item_id}", response_model=MenuItemResponse)
def get_menu_item(item_id: int, menu: MenuService = Depends(get_menu_service),
                  current_user=Depends(get_current_user)):
    return menu.get_item(current_user, item_id)


@app.post("/menu", response_model=MenuItemResponse, status_code=status.HTTP_201_CREATED)
def create_menu_item(data: MenuItemCreate, menu: MenuService = Depends(get_menu_service),
                     current_user=Depends(get_current_user)):
    return menu.create_item(current_user, data)


@app.put("/menu/{item_id}", response_model=MenuItemResponse)
def update_menu_item(item_id: int, data: MenuItemUpdate, menu: MenuService = Depends(get_menu_service),
                     current_user=Depends(get_current_user)):
    return menu.update_item(current_user, item_id, data)


@app.delete("/menu/{item_id}")
def delete_menu_item(item_id: int, menu: MenuService = Depends(get_menu_service),
                     current_user=Depends(get_current_user)):
    menu.delete_item(current_user, item_id)
    return {"message": "Menu item deleted successfully"}


@app.post("/menu/{item_id}/availability", response_model=MenuItemResponse)
def toggle_menu_item(item_id: int, data: AvailabilityUpdate, menu: MenuService = Depends(get_menu_service),
                     current_user=Depends(get_current_user)):
    return menu.toggle_availability(current_user, item_id, data.is_available)


# ---------- orders ----------

@app.get("/orders", response_model=List[OrderResponse])
def get_orders(db: Session = Depends(get_db)):
    return OrderService(db).list_orders()


@app.post("/orders/clear-completed", response_model=ClearOrdersResponse)
def clear_completed_orders(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return ClearOrdersResponse(deleted_count=OrderService(db).clear_completed_orders(current_user))


@app.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(order_id: int, db: Session = Depends(get_db)):
    return OrderService(db).get_order(order_id)


@app.post(
    "/orders",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(ORDER_RATE_LIMIT, RATE_LIMIT_WINDOW, "orders"))],
)
def create_order(data: OrderCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return OrderService(db).create_order(current_user, data)


@app.put("/orders/{order_id}/status", response_model=OrderResponse)
def update_order_status(order_id: int, data: OrderStatusUpdate, db: Session = Depends(get_db),
                        current_user=Depends(get_current_user)):
    return OrderService(db).update_order_status(current_user, order_id, data.status)


@app.put("/orders/{order_id}/payment", response_model=OrderResponse)
def update_payment_status(order_id: int, data: PaymentStatusUpdate, db: Session = Depends(get_db),
                          current_user=Depends(get_current_user)):
    return OrderService(db).update_payment_status(current_user, order_id, data.payment_status)


@app.delete("/orders/{order_id}")
def delete_order(order_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    OrderService(db).delete_order(current_user, order_id)
    return {"message": "Order deleted successfully"}


# ---------- reports ----------

@app.get("/reports/sales", response_model=SalesReportResponse)
def sales_report(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return reports.completed_sales(current_user, db)


@app.get("/reports/unpaid", response_model=UnpaidReportResponse)
def unpaid_report(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return reports.unpaid_orders(current_user, db)


@app.get("/reports/sales.pdf")
def sales_report_pdf(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    pdf_bytes = reports.sales_pdf(current_user, db)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": "attachment; filename=sales-report.pdf"},
    )


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
