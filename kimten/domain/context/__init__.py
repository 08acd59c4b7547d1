# This module handles turn composition

# +---------------------+
# |      Memory         |   (Short-term, bounded, raw text only)
# |---------------------|
# | User messages       |
# | Assistant replies   |
# +---------------------+

# +---------------------+
# |   Ephemeral input   |   (Per call, never stored)
# |---------------------|
# | Redacted context    |
# | Schema hint         |
# | Attachments         |
# +---------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |        Outbound turn         |   (Assembled fresh for each call)
# |------------------------------|
# | Memory snapshot              |
# | Enriched user message        |
# +------------------------------+
#         |
#         v
#   [LLM / tool loop]
