"""
Caste No Bar web application.

Server-rendered matrimony matching: sign in with a WhatsApp number and
PIN, complete a profile, browse and filter other members, contact them
on WhatsApp.

Every handler restores the caller's Supabase session (via
``open_session``) before it renders anything, so no page is ever drawn
while the auth state is still unknown.
"""

import logging
import sys
from datetime import date
from pathlib import Path

from fasthtml.common import *
from starlette.datastructures import UploadFile
from starlette.responses import HTMLResponse

# Add project root to path for imports
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from app.auth import get_backend, is_auth_enabled, open_session, require_login
from core.config import DEBUG, HOST, LOG_LEVEL, PORT, SESSION_SECRET
from core.contact import can_share_contact, contact_card, whatsapp_link
from core.credentials import validate_credentials
from core.directory import AGE_BANDS, FilterCriteria, filter_profiles
from core.profile_setup import SETTINGS_REQUIRED_FIELDS, SETUP_REQUIRED_FIELDS, save_profile
from core.profile_store import fetch_directory, fetch_own_profile, fetch_profile, fetch_profile_by_phone
from core.profiles import (
    ABOUT_ME_MAX_LENGTH,
    CONSENT_FIELDS,
    CONSENT_LABELS,
    AgeKnown,
    AgeUnknown,
    Consents,
    DateOfBirthKnown,
    Gender,
    MarriageTimeframe,
    Profile,
)
from core.results import Err
from core.storage import PhotoUpload
from core.user_settings import LANGUAGES, THEMES, UserSettings, load_settings, save_settings

logger = logging.getLogger(__name__)

APP_NAME = "Caste No Bar"
TAGLINE = "Love Beyond Boundaries"


def configure_logging():
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s: %(message)s")


async def server_error(request, exc):
    """Last-resort handler: log it, show a generic message, never crash."""
    logger.error(f"Unhandled error on {request.url.path}: {exc!r}")
    return HTMLResponse(
        to_xml(Html(
            Head(Title(f"Error - {APP_NAME}")),
            Body(H1("Something went wrong"), P("Please try again."), A("Back to home", href="/")),
        )),
        status_code=500,
    )


app, rt = fast_app(
    pico=False,
    secret_key=SESSION_SECRET,
    hdrs=(
        Meta(name="viewport", content="width=device-width, initial-scale=1"),
        Script(src="https://cdn.tailwindcss.com"),
    ),
    on_startup=[configure_logging],
    exception_handlers={500: server_error},
)


# =============================================================================
# UI COMPONENTS
# =============================================================================

FIELD_CLS = "w-full p-2 rounded border border-rose-200 focus:border-rose-500 bg-white text-gray-900"
BUTTON_CLS = "w-full p-2 bg-rose-600 hover:bg-rose-700 rounded text-white font-semibold"


def notice(message: str | None, variant: str = "error") -> "Div | None":
    """Inline message shown above a form. Variants: error, success."""
    if not message:
        return None
    colors = {
        "error": "bg-red-50 text-red-700 border-red-200",
        "success": "bg-emerald-50 text-emerald-700 border-emerald-200",
    }
    return Div(message, role="alert", cls=f"p-3 mb-4 rounded border text-sm {colors.get(variant, colors['error'])}")


def page(title: str, *content, user_nav: bool = False):
    header = Div(
        A(Span("♥ ", cls="text-rose-500"), APP_NAME, href="/", cls="text-xl font-bold text-rose-600"),
        Div(
            A("Dashboard", href="/dashboard", cls="text-gray-600 hover:text-rose-600"),
            A("Settings", href="/settings", cls="text-gray-600 hover:text-rose-600"),
            A("Sign Out", href="/logout", cls="text-gray-600 hover:text-rose-600"),
            cls="flex gap-4 text-sm",
        ) if user_nav else None,
        cls="max-w-5xl mx-auto flex justify-between items-center p-4",
    )
    return (
        Title(f"{title} - {APP_NAME}"),
        Div(
            header,
            Main(*content, cls="max-w-5xl mx-auto p-4"),
            Footer(P(f"{APP_NAME} • {TAGLINE}"), cls="text-center text-gray-400 text-sm py-8"),
            cls="min-h-screen bg-gradient-to-br from-rose-50 to-pink-100",
        ),
    )


def field(label: str, name: str, value="", type: str = "text", **kwargs) -> Div:
    return Div(
        Label(label, fr=name, cls="block text-sm font-medium text-gray-700 mb-1"),
        Input(type=type, name=name, id=name, value=value if value is not None else "", cls=FIELD_CLS, **kwargs),
        cls="mb-4",
    )


def select_field(label: str, name: str, options, selected: str = "", placeholder: str = "") -> Div:
    """``options`` is a sequence of (value, text) pairs."""
    opts = [Option(placeholder, value="", selected=not selected)] if placeholder else []
    opts += [Option(text, value=value, selected=(value == selected)) for value, text in options]
    return Div(
        Label(label, fr=name, cls="block text-sm font-medium text-gray-700 mb-1"),
        Select(*opts, name=name, id=name, cls=FIELD_CLS),
        cls="mb-4",
    )


def consent_checkboxes(consents: Consents) -> Div:
    given = consents.as_row()
    return Div(
        H3("Commitments", cls="font-semibold text-gray-800 mb-2"),
        *[
            Div(
                Input(type="checkbox", name=name, id=name, value="1", checked=given[name]),
                Label(f"{CONSENT_LABELS[name]} *", fr=name, cls="ml-2 text-sm text-gray-700"),
                cls="flex items-center mb-2",
            )
            for name in CONSENT_FIELDS
        ],
        cls="mb-4 p-4 rounded bg-rose-50 border border-rose-100",
    )


GENDER_OPTIONS = [(g.value, g.value) for g in Gender]
TIMEFRAME_OPTIONS = [(t.value, t.value) for t in MarriageTimeframe]


def _today() -> date:
    return date.today()


def age_text(profile: Profile) -> str:
    if isinstance(profile.age_info, AgeUnknown):
        return "Age not specified"
    return f"{profile.age(_today())} years"


def profile_card(profile: Profile) -> Div:
    photo = (
        Img(src=profile.photo_url, alt=profile.name, cls="w-full h-48 object-cover rounded-t")
        if profile.photo_url
        else Div("♥", cls="w-full h-48 flex items-center justify-center text-5xl text-rose-200 bg-rose-50 rounded-t")
    )
    return Div(
        Div(
            photo,
            Span("Admin", cls="absolute top-2 right-2 px-2 py-1 text-xs rounded bg-amber-400 text-white")
            if profile.is_admin else None,
            cls="relative",
        ),
        Div(
            H3(profile.name or "Unnamed member", cls="text-lg font-semibold text-gray-900"),
            P(age_text(profile), cls="text-sm text-gray-500"),
            P(profile.profession, cls="text-sm text-gray-700"),
            P(profile.city, cls="text-sm text-gray-700"),
            P(profile.marriage_timeframe.value if profile.marriage_timeframe else "", cls="text-sm text-gray-500"),
            A("View Profile", href=f"/profiles/{profile.id}",
              cls="mt-3 block text-center p-2 rounded bg-rose-600 hover:bg-rose-700 text-white text-sm"),
            cls="p-4",
        ),
        cls="profile-card bg-white rounded shadow",
    )


# =============================================================================
# ROUTES - HEALTH CHECK
# =============================================================================

@rt("/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "supabase": "configured" if is_auth_enabled() else "not_configured",
    }


# =============================================================================
# ROUTES - LANDING
# =============================================================================

@rt("/")
async def get(sess):
    manager = await open_session(sess, get_backend())
    if manager.is_authenticated:
        return RedirectResponse("/dashboard", status_code=303)

    features = [
        ("Beyond Caste & Religion", "Connect with people based on values, not caste or religion"),
        ("Progressive Values", "No dowry commitment and medical transparency for healthy relationships"),
        ("Simple & Secure", "Simple WhatsApp-based authentication and smart matching"),
    ]
    return page(
        "Welcome",
        Div(
            H1(APP_NAME, cls="text-5xl font-bold text-rose-600 mb-4"),
            P(f"{TAGLINE} • Unity in Diversity • Progressive Matrimony", cls="text-lg text-gray-600 mb-8"),
            A("Get Started", href="/auth?mode=signup",
              cls="inline-block px-8 py-3 bg-rose-600 hover:bg-rose-700 text-white font-semibold rounded-lg"),
            A("Sign In", href="/auth",
              cls="inline-block px-8 py-3 ml-4 border border-rose-400 text-rose-600 font-semibold rounded-lg"),
            cls="text-center py-16",
        ),
        Div(
            *[
                Div(H3(title, cls="font-semibold text-gray-900 mb-2"), P(text, cls="text-sm text-gray-600"),
                    cls="p-6 bg-white rounded shadow")
                for title, text in features
            ],
            cls="grid grid-cols-1 md:grid-cols-3 gap-6",
        ),
    )


# =============================================================================
# AUTHENTICATION ROUTES
# =============================================================================

def auth_page(mode: str = "signin", whatsapp_number: str = "", error: str | None = None,
              message: str | None = None):
    signing_up = mode == "signup"
    return page(
        "Create Account" if signing_up else "Sign In",
        Div(
            H1(APP_NAME, cls="text-2xl font-bold text-rose-600 text-center"),
            P(TAGLINE, cls="text-gray-500 text-center mb-6"),
            notice(error),
            notice(message, "success"),
            Form(
                Input(type="hidden", name="mode", value="signup" if signing_up else "signin"),
                field("WhatsApp Number", "whatsapp_number", whatsapp_number, type="tel",
                      placeholder="+91 98765 43210", required=True),
                field("4-Digit PIN", "pin", type="password", placeholder="0000",
                      maxlength="4", inputmode="numeric", required=True),
                field("Confirm PIN", "confirm_pin", type="password", placeholder="0000",
                      maxlength="4", inputmode="numeric", required=True) if signing_up else None,
                Button("Create Account" if signing_up else "Sign In", type="submit", cls=BUTTON_CLS),
                method="post", action="/auth",
            ),
            P(
                A("Already have an account? Sign in", href="/auth", cls="text-rose-600 hover:underline")
                if signing_up else
                A("Don't have an account? Sign up", href="/auth?mode=signup", cls="text-rose-600 hover:underline"),
                cls="mt-4 text-center text-sm",
            ),
            cls="max-w-md mx-auto mt-10 p-8 bg-white rounded-lg shadow",
        ),
    )


@rt("/auth")
async def get(sess, mode: str = "signin"):
    """Sign-in / sign-up page. Redirects to the dashboard if already signed in."""
    manager = await open_session(sess, get_backend())
    if manager.is_authenticated:
        return RedirectResponse("/dashboard", status_code=303)
    error = None if is_auth_enabled() else "Authentication not configured"
    return auth_page(mode, error=error)


@rt("/auth")
async def post(sess, mode: str = "signin", whatsapp_number: str = "", pin: str = "", confirm_pin: str = ""):
    """Handle the sign-in / sign-up form."""
    signing_up = mode == "signup"
    invalid = validate_credentials(whatsapp_number, pin, confirm_pin if signing_up else None)
    if invalid is not None:
        return auth_page(mode, whatsapp_number, error=invalid.message)

    backend = get_backend()
    manager = await open_session(sess, backend)
    if signing_up:
        result = await manager.sign_up(whatsapp_number, pin)
    else:
        result = await manager.sign_in(whatsapp_number, pin)
    if isinstance(result, Err):
        return auth_page(mode, whatsapp_number, error=result.message)

    if not manager.is_authenticated:
        # Account exists but the service wants the user to sign in explicitly
        return auth_page("signin", whatsapp_number, message="Account created successfully! Please sign in.")

    profile = await fetch_profile_by_phone(backend, whatsapp_number, access_token=manager.session.access_token)
    if isinstance(profile, Err) or profile.value is None or not profile.value.is_complete:
        return RedirectResponse("/profile-setup", status_code=303)
    return RedirectResponse("/dashboard", status_code=303)


@rt("/logout")
async def get(sess):
    """Sign out and return to the sign-in page."""
    manager = await open_session(sess, get_backend())
    await manager.sign_out()
    return RedirectResponse("/auth", status_code=303)


# =============================================================================
# ROUTES - PROFILE SETUP
# =============================================================================

def _text(form, name: str) -> str:
    value = form.get(name)
    return value.strip() if isinstance(value, str) else ""


def _consents_from_form(form) -> Consents:
    return Consents(**{name.removeprefix("consent_"): name in form for name in CONSENT_FIELDS})


def _date_of_birth(form) -> DateOfBirthKnown | AgeUnknown:
    try:
        return DateOfBirthKnown(date.fromisoformat(_text(form, "date_of_birth")))
    except ValueError:
        return AgeUnknown()


def _age(form) -> AgeKnown | AgeUnknown:
    try:
        return AgeKnown(int(_text(form, "age")))
    except ValueError:
        return AgeUnknown()


def _photo_from_form(form) -> UploadFile | None:
    photo = form.get("photo")
    if not isinstance(photo, UploadFile) or not photo.filename:
        return None
    return photo


async def _read_photo(photo: UploadFile | None) -> PhotoUpload | None:
    if photo is None:
        return None
    return PhotoUpload(filename=photo.filename, content=await photo.read())


def setup_form(draft: Profile, error: str | None = None):
    dob = draft.age_info.date_of_birth.isoformat() if isinstance(draft.age_info, DateOfBirthKnown) else ""
    return page(
        "Complete Your Profile",
        Div(
            H1("Complete Your Profile", cls="text-2xl font-bold text-rose-600 mb-6"),
            notice(error),
            Form(
                field("Full Name *", "name", draft.name, placeholder="Your name", required=True),
                field("Date of Birth *", "date_of_birth", dob, type="date", required=True),
                field("Profession *", "profession", draft.profession, placeholder="Your profession", required=True),
                select_field("Gender *", "gender", GENDER_OPTIONS,
                             draft.gender.value if draft.gender else "", "Select gender"),
                field("City *", "city", draft.city, placeholder="Your city", required=True),
                select_field("Marriage Timeframe *", "marriage_timeframe", TIMEFRAME_OPTIONS,
                             draft.marriage_timeframe.value if draft.marriage_timeframe else "",
                             "When do you want to get married?"),
                field("Email *", "email", draft.email, type="email",
                      placeholder="your.email@example.com", required=True),
                field("Profile Photo", "photo", type="file", accept="image/*"),
                consent_checkboxes(draft.consents),
                Button("Complete Profile", type="submit", cls=BUTTON_CLS),
                method="post", action="/profile-setup", enctype="multipart/form-data",
            ),
            cls="max-w-2xl mx-auto p-8 bg-white rounded-lg shadow",
        ),
    )


@rt("/profile-setup")
async def get(sess):
    backend = get_backend()
    manager = await open_session(sess, backend)
    blocked = require_login(manager)
    if blocked:
        return blocked
    own = await fetch_own_profile(backend, manager.session)
    if isinstance(own, Err):
        return setup_form(Profile(user_id=manager.identity.id), error=own.message)
    return setup_form(own.value or Profile(user_id=manager.identity.id))


@rt("/profile-setup")
async def post(request, sess):
    backend = get_backend()
    manager = await open_session(sess, backend)
    blocked = require_login(manager)
    if blocked:
        return blocked

    form = await request.form()
    own = await fetch_own_profile(backend, manager.session)
    existing = own.value if not isinstance(own, Err) and own.value else Profile(user_id=manager.identity.id)
    draft = Profile(
        id=existing.id,
        user_id=manager.identity.id,
        whatsapp_number=existing.whatsapp_number,
        name=_text(form, "name"),
        age_info=_date_of_birth(form),
        profession=_text(form, "profession"),
        gender=Gender.parse(_text(form, "gender")),
        city=_text(form, "city"),
        marriage_timeframe=MarriageTimeframe.parse(_text(form, "marriage_timeframe")),
        about_me=existing.about_me,
        email=_text(form, "email"),
        photo_url=existing.photo_url,
        consents=_consents_from_form(form),
        is_admin=existing.is_admin,
    )
    photo = await _read_photo(_photo_from_form(form))
    saved = await save_profile(backend, manager.session, draft, photo, required_fields=SETUP_REQUIRED_FIELDS)
    if isinstance(saved, Err):
        return setup_form(draft, error=saved.message)
    return RedirectResponse("/dashboard", status_code=303)


# =============================================================================
# ROUTES - DASHBOARD & PROFILES
# =============================================================================

def filter_panel(criteria: FilterCriteria) -> Form:
    return Form(
        H2("Find Your Perfect Match", cls="text-lg font-semibold text-gray-900 mb-4 col-span-full"),
        field("City", "city", criteria.city, placeholder="Search by city"),
        select_field("Age", "age", [(b.key, f"{b.label} years") for b in AGE_BANDS],
                     criteria.age_band, "All Ages"),
        select_field("Gender", "gender", GENDER_OPTIONS, criteria.gender, "All Genders"),
        field("Profession", "profession", criteria.profession, placeholder="Search by profession"),
        Button("Apply Filters", type="submit", cls=BUTTON_CLS + " col-span-full md:w-auto"),
        method="get", action="/dashboard",
        cls="grid grid-cols-1 md:grid-cols-4 gap-4 p-6 mb-6 bg-white rounded shadow",
    )


@rt("/dashboard")
async def get(sess, city: str = "", gender: str = "", age: str = "", profession: str = ""):
    backend = get_backend()
    manager = await open_session(sess, backend)
    blocked = require_login(manager)
    if blocked:
        return blocked

    own = await fetch_own_profile(backend, manager.session)
    if not isinstance(own, Err) and own.value is not None and not (own.value.is_complete or own.value.is_admin):
        return RedirectResponse("/profile-setup", status_code=303)

    criteria = FilterCriteria(city=city, gender=gender, profession=profession, age_band=age)
    directory = await fetch_directory(backend, manager.session)
    if isinstance(directory, Err):
        return page("Dashboard", filter_panel(criteria), notice(directory.message), user_nav=True)

    visible = filter_profiles(directory.value, criteria, today=_today())
    return page(
        "Dashboard",
        filter_panel(criteria),
        P(f"{len(visible)} of {len(directory.value)} profiles", cls="text-sm text-gray-500 mb-4"),
        Div(*[profile_card(p) for p in visible], cls="grid grid-cols-1 md:grid-cols-3 gap-6")
        if visible else
        P("No profiles match your filters. Try adjusting your search criteria.",
          cls="text-center text-gray-500 py-12"),
        user_nav=True,
    )


@rt("/profiles/{profile_id}")
async def get(profile_id: str, sess):
    backend = get_backend()
    manager = await open_session(sess, backend)
    blocked = require_login(manager)
    if blocked:
        return blocked

    result = await fetch_profile(backend, manager.session, profile_id)
    if isinstance(result, Err):
        return page("Profile", notice(result.message), A("Back to dashboard", href="/dashboard"), user_nav=True)
    profile = result.value

    details = [
        ("Age", age_text(profile)),
        ("Gender", profile.gender.value if profile.gender else ""),
        ("Profession", profile.profession),
        ("City", profile.city),
        ("Marriage Timeline", profile.marriage_timeframe.value if profile.marriage_timeframe else ""),
    ]
    if can_share_contact(profile):
        contact = Div(
            A("Contact on WhatsApp", href=whatsapp_link(profile.whatsapp_number, profile.name),
              target="_blank", rel="noopener noreferrer",
              cls="inline-block px-6 py-2 rounded bg-emerald-600 hover:bg-emerald-700 text-white"),
            A("Send Email", href=f"mailto:{profile.email}",
              cls="inline-block px-6 py-2 ml-2 rounded border border-rose-400 text-rose-600"),
            H3("Contact card", cls="font-semibold text-gray-800 mt-6 mb-2"),
            Pre(contact_card(profile, _today()), cls="p-3 bg-gray-50 rounded text-sm whitespace-pre-wrap"),
            cls="mt-6",
        )
    else:
        contact = P("This member has not shared their contact details.", cls="mt-6 text-gray-500")

    return page(
        profile.name or "Profile",
        Div(
            Img(src=profile.photo_url, alt=profile.name, cls="w-48 h-48 object-cover rounded-full mx-auto")
            if profile.photo_url else None,
            H1(profile.name or "Unnamed member", cls="text-2xl font-bold text-center text-gray-900 mt-4"),
            Dl(*[item for label, value in details for item in (Dt(label, cls="font-medium text-gray-600"),
                                                              Dd(value, cls="mb-2 text-gray-900"))],
               cls="mt-6"),
            Div(H3("About Me", cls="font-semibold text-gray-800 mb-2"), P(profile.about_me, cls="text-gray-700"))
            if profile.about_me else None,
            contact,
            cls="max-w-2xl mx-auto p-8 bg-white rounded-lg shadow",
        ),
        user_nav=True,
    )


# =============================================================================
# ROUTES - SETTINGS
# =============================================================================

def settings_page(profile: Profile, prefs: UserSettings, error: str | None = None, message: str | None = None):
    age = profile.age_info.years if isinstance(profile.age_info, AgeKnown) else (
        profile.age(_today()) if isinstance(profile.age_info, DateOfBirthKnown) else "")
    profile_form = Form(
        H2("Profile", cls="text-lg font-semibold text-gray-900 mb-4"),
        Img(src=profile.photo_url, alt=profile.name, cls="w-24 h-24 object-cover rounded-full mb-4")
        if profile.photo_url else None,
        field("Full Name", "name", profile.name),
        field("Age", "age", age, type="number", min="18", max="80"),
        field("WhatsApp Number", "whatsapp_number", profile.whatsapp_number, readonly=True),
        field("Profession", "profession", profile.profession),
        select_field("Gender", "gender", GENDER_OPTIONS, profile.gender.value if profile.gender else "",
                     "Select gender"),
        field("City", "city", profile.city),
        select_field("Marriage Timeframe", "marriage_timeframe", TIMEFRAME_OPTIONS,
                     profile.marriage_timeframe.value if profile.marriage_timeframe else "",
                     "When do you want to get married?"),
        field("Email", "email", profile.email, type="email"),
        Div(
            Label("About Me", fr="about_me", cls="block text-sm font-medium text-gray-700 mb-1"),
            Textarea(profile.about_me, name="about_me", id="about_me", rows="4",
                     maxlength=str(ABOUT_ME_MAX_LENGTH), cls=FIELD_CLS),
            P(f"{len(profile.about_me)}/{ABOUT_ME_MAX_LENGTH} characters", cls="text-xs text-gray-500"),
            cls="mb-4",
        ),
        field("Profile Photo", "photo", type="file", accept="image/*"),
        consent_checkboxes(profile.consents),
        Button("Update Profile", type="submit", cls=BUTTON_CLS),
        method="post", action="/settings/profile", enctype="multipart/form-data",
        cls="p-6 mb-6 bg-white rounded shadow",
    )

    def toggle(name: str, label: str) -> Div:
        return Div(
            Input(type="checkbox", name=name, id=name, value="1", checked=getattr(prefs, name)),
            Label(label, fr=name, cls="ml-2 text-sm text-gray-700"),
            cls="flex items-center mb-2",
        )

    prefs_form = Form(
        H2("Preferences", cls="text-lg font-semibold text-gray-900 mb-4"),
        toggle("email_notifications", "Email notifications"),
        toggle("profile_visibility", "Profile visible to other members"),
        toggle("show_whatsapp_publicly", "Show my WhatsApp number"),
        toggle("show_email_publicly", "Show my email"),
        P("These preferences are saved with your account. Contact details on your profile "
          "are shown according to your contact-sharing consent.",
          cls="text-xs text-gray-500 mb-4"),
        select_field("Theme", "theme_preference", [(t, t.capitalize()) for t in THEMES], prefs.theme_preference),
        select_field("Language", "language_preference", list(LANGUAGES.items()), prefs.language_preference),
        Button("Save Preferences", type="submit", cls=BUTTON_CLS),
        method="post", action="/settings/preferences",
        cls="p-6 bg-white rounded shadow",
    )
    return page(
        "Settings",
        H1("Settings", cls="text-2xl font-bold text-rose-600 mb-6"),
        notice(error),
        notice(message, "success"),
        profile_form,
        prefs_form,
        user_nav=True,
    )


async def _load_settings_page_data(backend, manager):
    own = await fetch_own_profile(backend, manager.session)
    if isinstance(own, Err):
        return None, None, own.message
    prefs = await load_settings(backend, manager.session)
    if isinstance(prefs, Err):
        return own.value, UserSettings(), prefs.message
    return own.value or Profile(user_id=manager.identity.id), prefs.value, None


@rt("/settings")
async def get(sess):
    backend = get_backend()
    manager = await open_session(sess, backend)
    blocked = require_login(manager)
    if blocked:
        return blocked
    profile, prefs, error = await _load_settings_page_data(backend, manager)
    if profile is None:
        return page("Settings", notice(error), user_nav=True)
    return settings_page(profile, prefs, error=error)


@rt("/settings/profile")
async def post(request, sess):
    backend = get_backend()
    manager = await open_session(sess, backend)
    blocked = require_login(manager)
    if blocked:
        return blocked

    profile, prefs, error = await _load_settings_page_data(backend, manager)
    if profile is None:
        return page("Settings", notice(error), user_nav=True)

    form = await request.form()
    draft = Profile(
        id=profile.id,
        user_id=manager.identity.id,
        # The number is the sign-in credential; it cannot change here
        whatsapp_number=profile.whatsapp_number,
        name=_text(form, "name"),
        age_info=_age(form),
        profession=_text(form, "profession"),
        gender=Gender.parse(_text(form, "gender")),
        city=_text(form, "city"),
        marriage_timeframe=MarriageTimeframe.parse(_text(form, "marriage_timeframe")),
        about_me=_text(form, "about_me"),
        photo_url=profile.photo_url,
        email=_text(form, "email"),
        consents=_consents_from_form(form),
        is_admin=profile.is_admin,
    )
    photo = await _read_photo(_photo_from_form(form))
    saved = await save_profile(backend, manager.session, draft, photo, required_fields=SETTINGS_REQUIRED_FIELDS)
    if isinstance(saved, Err):
        return settings_page(draft, prefs, error=saved.message)
    return settings_page(saved.value, prefs, message="Profile updated successfully")


@rt("/settings/preferences")
async def post(request, sess):
    backend = get_backend()
    manager = await open_session(sess, backend)
    blocked = require_login(manager)
    if blocked:
        return blocked

    form = await request.form()
    prefs = UserSettings(
        email_notifications="email_notifications" in form,
        profile_visibility="profile_visibility" in form,
        show_whatsapp_publicly="show_whatsapp_publicly" in form,
        show_email_publicly="show_email_publicly" in form,
        theme_preference=_text(form, "theme_preference") or "system",
        language_preference=_text(form, "language_preference") or "en",
    )
    profile, _, error = await _load_settings_page_data(backend, manager)
    if profile is None:
        return page("Settings", notice(error), user_nav=True)

    saved = await save_settings(backend, manager.session, prefs)
    if isinstance(saved, Err):
        return settings_page(profile, prefs, error=saved.message)
    return settings_page(profile, saved.value, message="Settings updated successfully")


if __name__ == "__main__":
    configure_logging()
    print("=" * 60)
    print(f"Server starting at http://{HOST}:{PORT}")
    print(f"Supabase: {'configured' if is_auth_enabled() else 'NOT configured'}")
    print("=" * 60)

    serve(host=HOST, port=PORT, reload=DEBUG)
