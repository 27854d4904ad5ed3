# Onboarding step constants (MerchantRecord.onboardingStep)

# Interaction Surface: First contact / go-live date request
# Accepts: DD/MM/YYYY date
WELCOME = "welcome"

# Interaction Surface: SLA accepted, waiting for the merchant to proceed
# Accepts: "continue"
CONTINUE = "continue"

# Interaction Surface: Hardware shipment address
# Accepts: free text longer than 10 characters
DELIVERY = "delivery"

# Interaction Surface: Installation type
# Accepts: "1" (self) or "2" (professional)
HARDWARE = "hardware"

# Interaction Surface: Product list / catalogue description
# Accepts: free text longer than 5 characters
PRODUCTS = "products"

# Interaction Surface: Training preference
# Accepts: free text longer than 5 characters
TRAINING = "training"

# Interaction Surface: Final review
# Accepts: "confirm" or "changes"
CONFIRMATION = "confirmation"

# Interaction Surface: Terminal State (happy path)
COMPLETED = "completed"

# Interaction Surface: Terminal State (SLA cannot be met, human takes over)
ESCALATED = "escalated"


# Happy path, in order
FORWARD_PATH = (
    WELCOME,
    CONTINUE,
    DELIVERY,
    HARDWARE,
    PRODUCTS,
    TRAINING,
    CONFIRMATION,
    COMPLETED,
)

ALL_STEPS = frozenset(FORWARD_PATH + (ESCALATED,))

TERMINAL_STEPS = frozenset({COMPLETED, ESCALATED})


def is_terminal(step: str) -> bool:
    return step in TERMINAL_STEPS


def is_forward_move(current: str, target: str) -> bool:
    """True if target sits later than current on the happy path."""
    if current not in FORWARD_PATH or target not in FORWARD_PATH:
        return False
    return FORWARD_PATH.index(target) > FORWARD_PATH.index(current)


def progress_percentage(step: str) -> int:
    """Share of the happy path already behind the merchant. Escalated or unknown steps report 0."""
    if step not in FORWARD_PATH:
        return 0
    return round(FORWARD_PATH.index(step) / (len(FORWARD_PATH) - 1) * 100)
