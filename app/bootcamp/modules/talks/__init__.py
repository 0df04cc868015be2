"""
Talks: one private consultation room per user, shared with the admin staff.

Admins see every room; everyone else only their own and is redirected there.
"""
