"""
Read-only HTTP gateway for node data held in an object store.

Files are addressed as ``/api/v1/data/{job}/{task}/{node}/{timestamp}-{name}``
where ``timestamp`` is in nanoseconds since the Unix epoch. A request is
served if it carries valid HTTP Basic credentials, or if the file is public
under its node's policy: the node is listed, not restricted, was commissioned
on or before the file's timestamp, and the task is not one of the restricted
tasks (see :mod:`.authorization`).

Node policies are loaded from the production node listing and refreshed in
the background (see :mod:`.services.node_table`). Objects are streamed from,
or redirected to, an S3-compatible bucket (see :mod:`.services.storage`).
"""
