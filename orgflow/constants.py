"""
Role sets shared by the resolver and the workflows

Kept as named sets so the resolver's terminal rule and the workflows'
terminal/override checks cannot drift apart.
"""
from orgflow.models.user import Role

# Roles for which the org chart has no further approver
RESOLVER_TERMINAL_ROLES = frozenset({Role.ADMIN, Role.CEO})

# An approval by one of these roles finalizes a leave request
TERMINAL_APPROVAL_ROLES = frozenset({Role.MD}) | RESOLVER_TERMINAL_ROLES

# May act on any pending leave request regardless of assignment
LEAVE_OVERRIDE_ROLES = frozenset({Role.CEO, Role.MD, Role.ADMIN})

# May resolve or void any non-terminal ticket
SUPER_AUTHORITY_ROLES = frozenset({Role.CEO, Role.MD, Role.ADMIN})

# May issue named tickets to anyone, not only direct reports
TICKET_ISSUE_BYPASS_ROLES = frozenset({Role.CEO, Role.MD})

# Never allowed to issue a named ticket
TICKET_ISSUE_DENIED_ROLES = frozenset({Role.GENERAL_STAFF})

# Depth of the role ladder; no approval chain is longer
MAX_ESCALATION_HOPS = 5
