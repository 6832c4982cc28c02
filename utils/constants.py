"""
utils/constants.py

Purpose: Centralized static content

- All user-facing messages (HTML parse mode)
- Button labels and menu keywords
- Product categories and flow keywords

(Prevents hardcoding across the codebase)
"""

# ============================================================
# CATALOG
# ============================================================

CURRENCY = "ETB"

PRODUCT_CATEGORIES = [
    "Academic Books",
    "Electronics",
    "Clothes",
    "Furniture",
    "Study Materials",
    "Sports & Fitness",
    "Other",
]

DEFAULT_CATEGORY = "Other"

# upper bound for a listed price; stored as a BSON int64
MAX_PRICE = 1_000_000_000

DONE_KEYWORDS = {"done", "next", "/done"}
SKIP_KEYWORD = "skip"

REJECTION_REASONS = [
    "Poor image quality",
    "Inappropriate content",
    "Missing or unclear information",
]

# ============================================================
# MENU & BUTTONS
# ============================================================

BUTTON_ADD_PRODUCT = "➕ Add Product"
BUTTON_MY_PRODUCTS = "📋 My Products"
BUTTON_HELP = "ℹ️ Help"
BUTTON_CANCEL = "❌ Cancel"

BUTTON_APPROVE = "✅ Approve"
BUTTON_REJECT = "❌ Reject"
BUTTON_BUY = "🛒 BUY"
BUTTON_CONTACT = "💬 CONTACT SELLER"
BUTTON_MARK_SOLD = "✅ Mark as sold"
BUTTON_SOLD = "✅ SOLD"

MAIN_MENU = [
    [BUTTON_ADD_PRODUCT, BUTTON_MY_PRODUCTS],
    [BUTTON_HELP],
]

# ============================================================
# WELCOME & HELP
# ============================================================

WELCOME_MESSAGE = """🎓 <b>Welcome to the Campus Marketplace!</b>

Buy &amp; sell within the university.

🔔 <b>Important:</b> You must join {channel} to post items."""

ADMIN_PENDING_SUFFIX = "\n\n<b>Admin:</b> {count} pending products to review."

HELP_MESSAGE = """ℹ️ <b>Campus Marketplace Help</b>

<b>How to Sell:</b>
1. Tap "➕ Add Product" or send /sell
2. Upload 1-5 photos, then send <i>done</i>
3. Send title, price, description and category
4. An admin reviews it before it is posted to {channel}

<b>How to Buy:</b>
1. Browse {channel}
2. Tap "BUY" or "CONTACT SELLER" under a post

<b>Other commands:</b>
/myproducts - your listings
/verify - add your department and year
/cancel - stop what you are doing"""

JOIN_CHANNEL_FIRST_MESSAGE = "🚫 You must join {channel} before adding products. Please join and then press /start again."

# ============================================================
# SUBMISSION FLOW
# ============================================================

ASK_IMAGES_MESSAGE = """📸 <b>Add Product - {progress}</b>

Send up to {max_images} product photos (one at a time).
When you are done, send <i>done</i>."""

PHOTO_RECEIVED_MESSAGE = "✅ Photo received ({count}/{max_images}). Send more or <i>done</i> to continue."

LAST_PHOTO_RECEIVED_MESSAGE = "✅ Photo received ({count}/{max_images}). That is the maximum."

MAX_IMAGES_MESSAGE = "⚠️ You already uploaded {max_images} photos (max). Extra photos are not added."

NEED_ONE_IMAGE_MESSAGE = "⚠️ You must upload at least one photo. Send a photo now or /cancel."

PHOTO_NOT_EXPECTED_MESSAGE = "ℹ️ Photos are not needed right now. {prompt}"

ASK_TITLE_MESSAGE = """🏷️ <b>{progress} - Product Title</b>

Send the product title:"""

EMPTY_TITLE_MESSAGE = "❌ The title cannot be empty. Send the product title:"

ASK_PRICE_MESSAGE = """💰 <b>{progress} - Price</b>

Send the price in ETB (numbers only, e.g. 1500):"""

INVALID_PRICE_MESSAGE = "❌ Invalid price. Send a number greater than zero (e.g., 1500)."

ASK_DESCRIPTION_MESSAGE = """✍️ <b>{progress} - Description</b>

Send a short description, or type <i>skip</i>."""

ASK_CATEGORY_MESSAGE = """📂 <b>{progress} - Category</b>

Choose a category below or type one:"""

SUBMITTED_MESSAGE = """✅ <b>Product submitted for review.</b>

Title: <b>{title}</b>
An admin will approve it before it is posted to {channel}."""

CANCELLED_MESSAGE = "❌ Cancelled. Nothing was saved."

FORM_EXPIRED_MESSAGE = "This form is no longer active."

NOTHING_TO_CANCEL_MESSAGE = "ℹ️ There is nothing to cancel."

# ============================================================
# REGISTRATION
# ============================================================

ASK_DEPARTMENT_MESSAGE = "📚 Verification - send your department (e.g., Civil Eng, CSE, Biology):"

ASK_YEAR_MESSAGE = "🗓️ Now send your year of study (e.g., 1, 2, 3, 4):"

EMPTY_PROFILE_FIELD_MESSAGE = "❌ Please send a non-empty answer."

VERIFICATION_SAVED_MESSAGE = "✅ Verification saved. Thank you!"

# ============================================================
# MODERATION
# ============================================================

REVIEW_SUMMARY_MESSAGE = """🆕 <b>New product pending review</b>

🏷️ <b>{title}</b>
💰 {price} ETB
📂 {category}
👤 Seller: {seller}
{description_line}🕒 Submitted: {submitted}"""

DESCRIPTION_LINE = "📝 {description}\n"

ACCESS_DENIED_MESSAGE = "⛔ Access denied."

PRODUCT_UNAVAILABLE_MESSAGE = "Product not found or no longer available."

ADMIN_APPROVED_ACK = "✅ Product approved and posted."

ADMIN_APPROVED_NOT_POSTED_ACK = "✅ Product approved (channel post failed, see logs)."

ADMIN_REJECTED_ACK = "❌ Product rejected."

REVIEW_DECIDED_LABEL = "{mark} {decision} by {admin}"

SELLER_APPROVED_MESSAGE = "🎉 Your product \"{title}\" has been approved and posted to {channel}!"

SELLER_REJECTED_MESSAGE = """❌ Your product "{title}" was not approved.

Common reasons:
{reasons}

You can fix it and submit again with /sell."""

NO_PENDING_MESSAGE = "No pending products at the moment."

# ============================================================
# BUYER ACTIONS
# ============================================================

CHANNEL_POST_MESSAGE = """🏷️ <b>{title}</b>

💰 <b>Price:</b> {price} ETB
📂 <b>Category:</b> {category}
{description_line}
🛒 Tap BUY or CONTACT SELLER below."""

CHANNEL_CONTROLS_MESSAGE = "🛒 Actions for: <b>{title}</b>"

BUY_SELLER_MESSAGE = """🛒 <b>{buyer}</b> wants to buy your product <b>{title}</b> ({price} ETB).

Contact them: {buyer_handle}
💡 Suggest meeting at a public spot on campus (library, cafeteria)."""

BUY_BUYER_MESSAGE = """✅ The seller of <b>{title}</b> has been notified.

Contact the seller: {seller_handle}
💡 Meet at a public spot on campus and check the item before paying."""

CONTACT_BUYER_MESSAGE = """💬 Seller of <b>{title}</b>: {seller_handle}"""

OWN_PRODUCT_MESSAGE = "This is your own listing."

START_BOT_FIRST_MESSAGE = "Please start the bot in a private chat first, then try again."

BUYER_NOTIFIED_ACK = "Seller notified. Check your private chat."

CONTACT_SENT_ACK = "Seller contact sent to your private chat."

MARKED_SOLD_ACK = "Marked as sold."

# ============================================================
# MY PRODUCTS
# ============================================================

NO_PRODUCTS_MESSAGE = "📋 You have not listed any products."

MY_PRODUCT_LINE = """🏷️ <b>{title}</b>
💰 {price} ETB
📂 {category}
Status: {status}"""

# ============================================================
# BROADCAST
# ============================================================

BROADCAST_USAGE_MESSAGE = """Usage:
/broadcast &lt;message&gt; - all users
/broadcast_dept &lt;department&gt;
&lt;message&gt; - one department (department on the first line)
/broadcast_members &lt;message&gt; - channel members only"""

BROADCAST_TEMPLATE = "📢 <b>Announcement</b>\n\n{message}"

BROADCAST_PROGRESS_MESSAGE = "📡 Broadcasting to {total} users…\n\n✔️ Sent: {sent}  ❌ Failed: {failed}"

BROADCAST_DONE_MESSAGE = "✅ <b>Broadcast done</b>\n\n✔️ Sent: {sent}  ❌ Failed: {failed}"

# ============================================================
# ERRORS
# ============================================================

GENERIC_ERROR_MESSAGE = "❌ Something went wrong. Please try again."

UNKNOWN_INPUT_MESSAGE = "ℹ️ Use the menu below or send /help."
