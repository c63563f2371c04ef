# This module handles context engineering

# +------------------------------+
# |     Conversation history     |   (Per session, append-only in a turn)
# |------------------------------|
# | user / assistant / tool msgs |
# | tool calls and results       |
# +------------------------------+
#               |
#               |  estimate_tokens() > threshold ?
#               v
# +------------------------------+
# |          Checkpoint          |   (Replaces the trimmed prefix)
# |------------------------------|
# | original request (verbatim)  |
# | digest of trimmed tool calls |
# | resumption instructions      |
# +------------------------------+
#               +
# +------------------------------+
# |   Recent messages (verbatim) |
# +------------------------------+
#               |
#               v
#   [LLM / tool call]
