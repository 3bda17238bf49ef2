notifications_sql = """
CREATE TYPE notification_category AS ENUM
    ('system', 'message', 'task', 'alert', 'report', 'farm', 'budget', 'other');

CREATE TYPE notification_priority AS ENUM ('low', 'medium', 'high', 'urgent');

CREATE TABLE notifications (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    category notification_category NOT NULL DEFAULT 'system',
    priority notification_priority NOT NULL DEFAULT 'medium',
    link TEXT,
    metadata JSONB,
    is_read BOOLEAN NOT NULL DEFAULT FALSE,
    expires_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX notifications_user_unread_idx ON notifications (user_id, is_read);
"""

notification_preferences_sql = """
CREATE TABLE notification_preferences (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
    email_enabled BOOLEAN NOT NULL DEFAULT TRUE,
    push_enabled BOOLEAN NOT NULL DEFAULT TRUE,
    category_preferences JSONB NOT NULL DEFAULT '{}'::jsonb,
    quiet_hours_start TIME,
    quiet_hours_end TIME
);
"""

notification_templates_sql = """
CREATE TABLE notification_templates (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name TEXT NOT NULL UNIQUE,
    title_template TEXT NOT NULL,
    message_template TEXT NOT NULL,
    category notification_category NOT NULL DEFAULT 'system'
);
"""

send_notification_sql = """
CREATE OR REPLACE FUNCTION send_notification(
    p_user_id UUID,
    p_title TEXT,
    p_message TEXT,
    p_category notification_category DEFAULT 'system',
    p_link TEXT DEFAULT NULL,
    p_metadata JSONB DEFAULT NULL,
    p_priority notification_priority DEFAULT 'medium'
) RETURNS UUID
LANGUAGE sql SECURITY DEFINER AS $$
    INSERT INTO notifications (user_id, title, message, category, link, metadata, priority)
    VALUES (p_user_id, p_title, p_message, p_category, p_link, p_metadata, p_priority)
    RETURNING id;
$$;
"""
