"""
Centralized configuration — all env vars, constants, lead schema.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── Lead store (flat files) ───────────────────────────────────────────────────
DATA_DIR = os.getenv('DATA_DIR', os.path.join(os.getcwd(), 'data'))
LEADS_FILENAME = os.getenv('LEADS_FILENAME', 'leads.csv')
BACKUP_DIRNAME = os.getenv('BACKUP_DIRNAME', 'backups')

# ── GitHub ────────────────────────────────────────────────────────────────────
GITHUB_TOKEN = os.getenv('GITHUB_TOKEN')
GITHUB_API_URL = os.getenv('GITHUB_API_URL', 'https://api.github.com')

# ── OpenAI ────────────────────────────────────────────────────────────────────
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')

# ── Resend (outreach email) ──────────────────────────────────────────────────
RESEND_API_KEY = os.getenv('RESEND_API_KEY')
RESEND_API_URL = 'https://api.resend.com/emails'
FROM_EMAIL = os.getenv('FROM_EMAIL', 'noreply@xeinst.com')

# ── Instantly (campaign sequencer) ──────────────────────────────────────────
INSTANTLY_API_KEY = os.getenv('INSTANTLY_API_KEY')
INSTANTLY_CAMPAIGN_ID = os.getenv('INSTANTLY_CAMPAIGN_ID')
INSTANTLY_API_URL = os.getenv('INSTANTLY_API_URL', 'https://api.instantly.ai/api/v1')
INSTANTLY_BATCH_SIZE = int(os.getenv('INSTANTLY_BATCH_SIZE', '50'))

# ── Cloudflare R2 (off-site backup copies) ───────────────────────────────────
R2_ACCESS_KEY_ID = os.getenv('R2_ACCESS_KEY_ID')
R2_SECRET_ACCESS_KEY = os.getenv('R2_SECRET_ACCESS_KEY')
R2_BUCKET_NAME = os.getenv('R2_BUCKET_NAME')
R2_ENDPOINT_URL = os.getenv('R2_ENDPOINT_URL')

# ── Google Sheets ────────────────────────────────────────────────────────────
GOOGLE_SHEETS_CRED = os.getenv('GOOGLE_SHEETS_CRED')
GOOGLE_SHEETS_ID = os.getenv('GOOGLE_SHEETS_ID')
GOOGLE_SHEETS_TAB = os.getenv('GOOGLE_SHEETS_TAB', 'Leads')

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Auth ─────────────────────────────────────────────────────────────────────
DASHBOARD_PASSWORD = os.getenv('DASHBOARD_PASSWORD')

# ── Rate limiting (sequential delays, seconds) ───────────────────────────────
SCRAPE_DELAY_SECONDS = float(os.getenv('SCRAPE_DELAY_SECONDS', '1.0'))
PAGE_DELAY_SECONDS = float(os.getenv('PAGE_DELAY_SECONDS', '2.0'))
SEND_DELAY_SECONDS = float(os.getenv('SEND_DELAY_SECONDS', '1.0'))

# ── Discovery heuristics ─────────────────────────────────────────────────────
ACTIVE_WINDOW_DAYS = int(os.getenv('ACTIVE_WINDOW_DAYS', '90'))
TARGET_KEYWORDS = ['n8n', 'n8n-workflow']

DEFAULT_SEARCH_QUERIES = [
    'topic:n8n',
    'topic:n8n-workflows',
    'n8n language:javascript language:typescript language:json',
    'n8n workflow automation',
]

# ── Lead schema ──────────────────────────────────────────────────────────────
LEAD_STATUSES = ['new', 'contacted', 'responded', 'converted']
AI_RECOMMENDATIONS = ['approve', 'reject', 'review']

# Persisted column order of leads.csv. Changing it breaks existing files.
LEAD_COLUMNS = [
    'id',
    'github_username',
    'repo_name',
    'repo_url',
    'repo_description',
    'email',
    'last_activity',
    'created_at',
    'email_sent',
    'email_sent_at',
    'status',
    'email_approved',
    'email_pending_approval',
    'ai_score',
    'ai_recommendation',
    'ai_analysis',
]

# Human-readable headers for the full export, same order as LEAD_COLUMNS
EXPORT_HEADERS = [
    'ID',
    'GitHub Username',
    'Repository Name',
    'Repository URL',
    'Description',
    'Email',
    'Last Activity',
    'Created At',
    'Email Sent',
    'Email Sent At',
    'Status',
    'Email Approved',
    'Email Pending',
    'AI Score',
    'AI Recommendation',
    'AI Analysis',
]

# ── Pipeline run definitions ─────────────────────────────────────────────────
RUN_STAGES = [
    'discovery',
    'scoring',
]

RUN_STATUSES = [
    'queued',
    'discovering',
    'scoring',
    'completed',
    'failed',
]

# ── Outreach copy ────────────────────────────────────────────────────────────
OUTREACH_SUBJECT = 'Your awesome n8n workflow caught our attention! 🚀'
WAITLIST_URL = os.getenv('WAITLIST_URL', 'https://xeinst.com/waitlist')
