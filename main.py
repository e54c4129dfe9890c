"""FastAPI Backend - trips, their locations, and the routes between them"""
import os
import logging

# Load .env before anything else
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from typing import Optional
from datetime import datetime, timedelta
from passlib.context import CryptContext
from jose import JWTError, jwt

from database import init_db, get_db, User, Trip, Location
from geocoding import location_suggestions
from route_map import MapSession, build_visited_map
from routing import RouteResolver, summarize
from routing.errors import AuthorizationDenied, ResolutionExhausted
from routing.waypoints import is_valid_coordinate

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

# Initialize database
init_db()

# FastAPI app
app = FastAPI(
    title="Trip Mapper API",
    description="Trips, visited locations and driving routes between them",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-secret-key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours
bearer_scheme = HTTPBearer(auto_error=False)

# Pydantic models
class UserCreate(BaseModel):
    email: str
    name: str
    password: str

class UserLogin(BaseModel):
    email: str
    password: str

class TripCreate(BaseModel):
    name: str
    description: str = ""
    image_url: Optional[str] = None
    start_date: str  # YYYY-MM-DD
    end_date: str  # YYYY-MM-DD

class LocationCreate(BaseModel):
    name: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    description: Optional[str] = None

class LocationUpdate(BaseModel):
    title: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: Optional[str] = None

# Helper functions
def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=15)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt

def get_current_user_id(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> str:
    """Resolve the session's user id from the bearer token."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Please login first")
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return user_id

def _token_response(db_user: User) -> dict:
    access_token = create_access_token(
        data={"sub": db_user.id},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": {
            "id": db_user.id,
            "email": db_user.email,
            "name": db_user.name,
        }
    }

def _owned_trip(db, trip_id: str, user_id: str) -> Trip:
    trip = db.query(Trip).filter(Trip.id == trip_id).first()
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")
    if trip.user_id != user_id:
        raise AuthorizationDenied("Not authorized to access this trip")
    return trip

def _owned_location(db, location_id: str, user_id: str, action: str) -> Location:
    location = db.query(Location).filter(Location.id == location_id).first()
    if not location:
        raise HTTPException(status_code=404, detail="Location not found")
    if location.trip.user_id != user_id:
        raise AuthorizationDenied(f"Not authorized to {action} this location")
    return location

def _location_dict(loc: Location) -> dict:
    return {
        "id": loc.id,
        "trip_id": loc.trip_id,
        "title": loc.title,
        "latitude": loc.latitude,
        "longitude": loc.longitude,
        "description": loc.description,
        "order": loc.order,
    }

def _route_records(trip: Trip) -> list:
    return [
        {
            "id": loc.id,
            "name": loc.title,
            "latitude": loc.latitude,
            "longitude": loc.longitude,
            "description": loc.description,
        }
        for loc in trip.locations
    ]

# Error handlers
@app.exception_handler(AuthorizationDenied)
async def authorization_denied_handler(request: Request, exc: AuthorizationDenied):
    return JSONResponse(status_code=403, content={"detail": exc.message})

@app.exception_handler(ResolutionExhausted)
async def resolution_exhausted_handler(request: Request, exc: ResolutionExhausted):
    return JSONResponse(
        status_code=503,
        content={"detail": str(exc), "retry": True, "attempts": list(exc.attempts)},
    )

# Auth endpoints
@app.post("/auth/register")
def register(user: UserCreate):
    with get_db() as db:
        # Check if user exists
        existing = db.query(User).filter(User.email == user.email).first()
        if existing:
            raise HTTPException(status_code=400, detail="Email already registered")

        db_user = User(
            email=user.email,
            name=user.name,
            password_hash=hash_password(user.password),
        )
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
        return _token_response(db_user)

@app.post("/auth/login")
def login(user: UserLogin):
    with get_db() as db:
        db_user = db.query(User).filter(User.email == user.email).first()
        if not db_user or not verify_password(user.password, db_user.password_hash):
            raise HTTPException(status_code=401, detail="Invalid credentials")
        return _token_response(db_user)

# Trip endpoints
@app.get("/trips")
def get_trips(user_id: str = Depends(get_current_user_id)):
    with get_db() as db:
        trips = db.query(Trip).filter(Trip.user_id == user_id).order_by(Trip.start_date.desc()).all()
        return [
            {
                "id": t.id,
                "name": t.name,
                "description": t.description,
                "start_date": t.start_date,
                "end_date": t.end_date,
                "location_count": len(t.locations),
                "created_at": t.created_at.isoformat()
            }
            for t in trips
        ]

@app.post("/trips")
def create_trip(trip: TripCreate, user_id: str = Depends(get_current_user_id)):
    if not trip.name.strip() or not trip.start_date or not trip.end_date:
        raise HTTPException(status_code=400, detail="All fields are required.")

    with get_db() as db:
        db_trip = Trip(
            user_id=user_id,
            name=trip.name.strip(),
            description=trip.description.strip(),
            image_url=trip.image_url or None,
            start_date=trip.start_date,
            end_date=trip.end_date,
        )
        db.add(db_trip)
        db.commit()
        db.refresh(db_trip)
        return {"id": db_trip.id, "name": db_trip.name, "message": "Trip created successfully."}

@app.get("/trips/{trip_id}")
def get_trip(trip_id: str, user_id: str = Depends(get_current_user_id)):
    with get_db() as db:
        trip = _owned_trip(db, trip_id, user_id)
        return {
            "id": trip.id,
            "name": trip.name,
            "description": trip.description,
            "image_url": trip.image_url,
            "start_date": trip.start_date,
            "end_date": trip.end_date,
            "locations": [_location_dict(loc) for loc in trip.locations],
            "created_at": trip.created_at.isoformat()
        }

# Location endpoints
@app.post("/trips/{trip_id}/locations")
def add_location(trip_id: str, body: LocationCreate, user_id: str = Depends(get_current_user_id)):
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Location name is required")
    if body.lat is None or body.lng is None:
        raise HTTPException(status_code=400, detail="Location coordinates are required")
    if not is_valid_coordinate(body.lat, body.lng):
        raise HTTPException(status_code=400, detail="Coordinates out of valid range")

    with get_db() as db:
        trip = _owned_trip(db, trip_id, user_id)

        existing = db.query(Location).filter(Location.trip_id == trip.id, Location.title == name).first()
        if existing:
            raise HTTPException(status_code=409, detail="Location already exists in this trip")

        count = db.query(Location).filter(Location.trip_id == trip.id).count()
        location = Location(
            trip_id=trip.id,
            title=name,
            latitude=body.lat,
            longitude=body.lng,
            description=(body.description or "").strip() or None,
            order=count,
        )
        db.add(location)
        db.commit()
        db.refresh(location)
        log.info("Added location %s to trip %s at position %d", location.id, trip.id, count)
        return _location_dict(location)

@app.put("/locations/{location_id}")
def update_location(location_id: str, body: LocationUpdate, user_id: str = Depends(get_current_user_id)):
    title = body.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="Location name is required")
    if body.latitude is None or body.longitude is None:
        raise HTTPException(status_code=400, detail="Invalid coordinates provided")
    if not is_valid_coordinate(body.latitude, body.longitude):
        raise HTTPException(status_code=400, detail="Coordinates out of valid range")

    with get_db() as db:
        location = _owned_location(db, location_id, user_id, "edit")
        location.title = title
        location.latitude = body.latitude
        location.longitude = body.longitude
        if body.description is not None:
            location.description = body.description.strip() or None
        db.commit()
        db.refresh(location)
        return {"message": "Location updated successfully", "location": _location_dict(location)}

@app.delete("/locations/{location_id}")
def delete_location(location_id: str, user_id: str = Depends(get_current_user_id)):
    with get_db() as db:
        location = _owned_location(db, location_id, user_id, "delete")
        trip = location.trip
        db.delete(location)
        db.flush()

        # close the gap so the remaining stops stay 0..n-1
        for position, remaining in enumerate(
            db.query(Location).filter(Location.trip_id == trip.id).order_by(Location.order).all()
        ):
            remaining.order = position
        db.commit()
        return {"message": "Location deleted successfully"}

@app.get("/locations/suggestions")
def get_location_suggestions(q: str = Query("", description="Place name to search for")):
    return {"suggestions": location_suggestions(q)}

# Route endpoints
@app.get("/trips/{trip_id}/route")
def get_trip_route(trip_id: str, user_id: str = Depends(get_current_user_id)):
    """Resolve the driving route through the trip's locations, in order."""
    with get_db() as db:
        trip = _owned_trip(db, trip_id, user_id)
        records = _route_records(trip)

    resolution = RouteResolver().resolve(records)
    summary = summarize(resolution)
    return {
        "trip_id": trip_id,
        "kind": resolution.kind.value,
        "approximate": resolution.approximate,
        "attempts": list(resolution.attempts),
        "waypoints": [
            {"id": w.id, "name": w.name, "latitude": w.latitude, "longitude": w.longitude}
            for w in resolution.waypoints
        ],
        "geometry": [list(p) for p in resolution.route.geometry] if resolution.route else [],
        "summary": summary.to_dict() if summary else None,
    }

@app.get("/trips/{trip_id}/map", response_class=HTMLResponse)
def get_trip_map(trip_id: str, overview: bool = False, user_id: str = Depends(get_current_user_id)):
    with get_db() as db:
        trip = _owned_trip(db, trip_id, user_id)
        records = _route_records(trip)

    session = MapSession(overview=overview)
    session.show(records)
    if session.error:
        raise session.error
    if session.map is None:
        return HTMLResponse("<p>No locations added to this trip yet.</p>")
    return HTMLResponse(session.render_html())

# Visited locations across all trips
def _visited_locations(db, user_id: str) -> dict:
    rows = (
        db.query(Location, Trip)
        .join(Trip, Location.trip_id == Trip.id)
        .filter(Trip.user_id == user_id)
        .order_by(Trip.start_date.desc(), Location.order.asc())
        .all()
    )
    data = [
        {
            **_location_dict(loc),
            "trip_name": trip.name,
            "visited_date": loc.created_at.isoformat() if loc.created_at else None,
            "trip_start_date": trip.start_date,
            "trip_end_date": trip.end_date,
        }
        for loc, trip in rows
    ]
    return {
        "data": data,
        "total_locations": len(data),
        "total_trips": len({loc["trip_id"] for loc in data}),
    }

@app.get("/visited")
def get_visited(user_id: str = Depends(get_current_user_id)):
    with get_db() as db:
        result = _visited_locations(db, user_id)
    log.info("Found %d locations across %d trips", result["total_locations"], result["total_trips"])
    return result

@app.get("/visited/map", response_class=HTMLResponse)
def get_visited_map(user_id: str = Depends(get_current_user_id)):
    with get_db() as db:
        result = _visited_locations(db, user_id)
    return HTMLResponse(build_visited_map(result["data"]).get_root().render())

# Health check
@app.get("/health")
def health_check():
    from routing.strategies import OSRM_BASE_URL, ROUTING_PROFILE
    return {
        "status": "ok",
        "version": "1.0.0",
        "routing_backend": OSRM_BASE_URL,
        "routing_profile": ROUTING_PROFILE,
        "strategies": [s.name for s in RouteResolver().strategies],
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
