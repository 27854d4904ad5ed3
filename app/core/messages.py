from app.core import state_machine as sm
from app.utils.time import format_ddmmyyyy

HELP_TEXT = (
    "🆘 Help Menu:\n\n"
    "• Send your go-live date in DD/MM/YYYY format\n"
    "• Type 'support' to speak with an agent\n"
    "• Type 'status' to check your progress\n"
    "• Type 'restart' to begin again"
)

RESET_TEXT = "🔄 Conversation reset. Send 'merchant onboarding' to begin again."

FALLBACK_TEXT = "🤔 I'm sorry, I didn't understand that. Please type 'help' for a list of commands."

# Reply to unknown senders that fail the activation gate (policy "reply")
NOT_UNDERSTOOD_TEXT = (
    "🤔 I'm sorry, I don't understand. "
    "Send 'merchant onboarding' to start setting up your business."
)

INVALID_DATE_TEXT = "❌ Invalid date format. Please use DD/MM/YYYY (e.g., 25/12/2024)"

PAST_DATE_TEXT = (
    "❌ That go-live date is in the past. "
    "Please send a future date in DD/MM/YYYY format (e.g., 25/12/2024)"
)

AUGMENTER_FALLBACK_TEXT = (
    "🤖 I'm having trouble processing that. Please try again or type 'help' for assistance."
)

CHANGES_TEXT = "🔄 Let's review your information. Starting from delivery address..."

STEP_TEXTS = {
    sm.DELIVERY: (
        "📦 Step 1: Please provide your delivery address for hardware shipment.\n\n"
        "Format: Street, City, State, ZIP, Country"
    ),
    sm.HARDWARE: (
        "🔧 Step 2: Choose installation type:\n\n"
        "1️⃣ Self-installation (Free)\n"
        "2️⃣ Professional installation ($99)\n\n"
        "Reply with 1 or 2, plus preferred date if choosing option 2."
    ),
    sm.PRODUCTS: (
        "📋 Step 3: Upload your product list\n\n"
        "Send a photo, PDF, or text description of your products. "
        "This helps us configure your system properly."
    ),
    sm.TRAINING: (
        "🎓 Step 4: Schedule training session\n\n"
        "Choose:\n"
        "1️⃣ Video call (recommended)\n"
        "2️⃣ Phone call\n"
        "3️⃣ In-person (if available)\n\n"
        "Reply with: Type [1,2,3], Date: DD/MM/YYYY, Time: [Morning/Afternoon/Evening]"
    ),
    sm.CONFIRMATION: (
        "🎉 Final Step: Review and confirm\n\n"
        "All steps completed! Your setup summary will be sent shortly.\n\n"
        "Reply \"confirm\" to finalize or \"changes\" to modify anything."
    ),
}


def step_text(step: str) -> str:
    return STEP_TEXTS[step]


def welcome_text(business_name: str = "") -> str:
    greeting = f"Hello {business_name}! 👋" if business_name else "Hello! 👋"
    return (
        f"{greeting}\n\n"
        "Welcome to our onboarding assistant! 🚀\n\n"
        "To get started, please share your preferred Go-Live date in DD/MM/YYYY format "
        "(e.g., 25/12/2024).\n\n"
        "Reply with:\n"
        "• Your go-live date\n"
        "• \"help\" for assistance\n"
        "• \"support\" to speak with an agent"
    )


def sla_result_text(can_meet_sla: bool, go_live_date, days_until_go_live: int) -> str:
    when = format_ddmmyyyy(go_live_date)
    if can_meet_sla:
        return (
            f"✅ Great! We can meet your Go-Live date of {when}.\n\n"
            f"You have {days_until_go_live} days until Go-Live.\n\n"
            "Reply \"continue\" to proceed with onboarding steps."
        )
    return (
        f"⚠️ Your Go-Live date of {when} is challenging.\n\n"
        f"With only {days_until_go_live} days available, we need to escalate to our specialist team.\n\n"
        "An onboarding manager will contact you within 2 hours."
    )


def support_text(merchant_id: str) -> str:
    return (
        "🎧 Support Request Logged\n\n"
        "A human agent will contact you within 2 hours.\n"
        f"Reference ID: {merchant_id}"
    )


def status_text(record) -> str:
    return (
        "📊 Your Onboarding Status:\n\n"
        f"🆔 ID: {record.id}\n"
        f"📱 Step: {record.onboardingStep}\n"
        f"✅ Status: {record.status}\n"
        f"📅 Started: {format_ddmmyyyy(record.createdAt)}"
    )


def changes_text() -> str:
    return f"{CHANGES_TEXT}\n\n{step_text(sm.DELIVERY)}"


def completion_text(record) -> str:
    return (
        "🎉 Congratulations! Your onboarding is complete!\n\n"
        "📋 Summary:\n"
        f"📅 Go-Live: {format_ddmmyyyy(record.goLiveDate) or 'Not set'}\n"
        f"📦 Delivery: {record.deliveryAddress or 'Not provided'}\n"
        f"🔧 Installation: {record.hardwareChoice or 'Not selected'}\n"
        f"📋 Products: {'Configured' if record.productList else 'Not provided'}\n"
        f"🎓 Training: {'Scheduled' if record.trainingInfo else 'Not scheduled'}\n\n"
        "✅ You'll receive confirmation emails shortly.\n"
        "📞 Support: Type 'support' anytime for help!"
    )
