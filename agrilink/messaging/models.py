conversations_sql = """
CREATE TYPE conversation_type AS ENUM ('direct', 'group', 'announcement');

CREATE TABLE conversations (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    title TEXT,
    type conversation_type NOT NULL DEFAULT 'direct',
    created_by UUID REFERENCES users(id) ON DELETE SET NULL,
    organization_id UUID REFERENCES organizations(id) ON DELETE CASCADE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

conversation_participants_sql = """
CREATE TYPE participant_role AS ENUM ('admin', 'member');

CREATE TABLE conversation_participants (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    conversation_id UUID NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    role participant_role NOT NULL DEFAULT 'member',
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    last_read_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    joined_at TIMESTAMPTZ NOT NULL DEFAULT now(),

    -- Removing a participant flips is_active, the row stays
    UNIQUE (conversation_id, user_id)
);
"""

messages_sql = """
CREATE TYPE message_content_type AS ENUM ('text', 'image', 'file', 'system');

CREATE TABLE messages (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    conversation_id UUID NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    -- NULL for system messages
    sender_id UUID REFERENCES users(id) ON DELETE SET NULL,
    content TEXT NOT NULL DEFAULT '',
    content_type message_content_type NOT NULL DEFAULT 'text',
    attachment_url TEXT,
    attachment_type TEXT,
    is_edited BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

message_status_sql = """
CREATE TABLE message_status (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    message_id UUID NOT NULL REFERENCES messages(id) ON DELETE CASCADE,
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    is_delivered BOOLEAN NOT NULL DEFAULT FALSE,
    is_read BOOLEAN NOT NULL DEFAULT FALSE,
    read_at TIMESTAMPTZ,
    UNIQUE (message_id, user_id)
);

-- One status row per recipient, created with the message
CREATE OR REPLACE FUNCTION create_message_status() RETURNS trigger
LANGUAGE plpgsql AS $$
BEGIN
    INSERT INTO message_status (message_id, user_id)
    SELECT NEW.id, p.user_id
    FROM conversation_participants p
    WHERE p.conversation_id = NEW.conversation_id
      AND p.is_active
      AND p.user_id IS DISTINCT FROM NEW.sender_id;
    RETURN NEW;
END;
$$;

CREATE TRIGGER messages_create_status
AFTER INSERT ON messages
FOR EACH ROW EXECUTE FUNCTION create_message_status();
"""

conversation_previews_sql = """
CREATE OR REPLACE VIEW conversation_previews AS
SELECT
    c.id AS conversation_id,
    c.title,
    c.type,
    last_message.content AS last_message_content,
    last_message.created_at AS last_message_time,
    trim(concat(u.first_name, ' ', u.last_name)) AS last_sender_name,
    (
        SELECT count(*) FROM conversation_participants p
        WHERE p.conversation_id = c.id AND p.is_active
    ) AS participant_count
FROM conversations c
LEFT JOIN LATERAL (
    SELECT m.content, m.created_at, m.sender_id
    FROM messages m
    WHERE m.conversation_id = c.id
    ORDER BY m.created_at DESC
    LIMIT 1
) last_message ON TRUE
LEFT JOIN users u ON u.id = last_message.sender_id;
"""

unread_message_counts_sql = """
CREATE OR REPLACE VIEW unread_message_counts AS
SELECT
    s.user_id,
    m.conversation_id,
    count(*) AS unread_count
FROM message_status s
JOIN messages m ON m.id = s.message_id
WHERE NOT s.is_read
GROUP BY s.user_id, m.conversation_id;
"""
