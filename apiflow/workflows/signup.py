from apiflow.engine.models import Graph, Node, Edge, StepKind


def create_signup_workflow() -> Graph:
    """Create the user signup workflow: collect, validate, store, notify"""

    nodes = [
        Node(
            id="collect",
            type=StepKind.INPUT,
            fields={
                "variables": [
                    {"name": "name"},
                    {"name": "email"},
                    {"name": "password"},
                ]
            }
        ),
        Node(
            id="validate",
            type=StepKind.VALIDATION,
            fields={
                "rules": [
                    {"field": "{{email}}", "required": True, "type": "string"},
                    {"field": "{{password}}", "required": True, "type": "string"},
                ]
            }
        ),
        Node(
            id="store_user",
            type=StepKind.INSERT,
            fields={
                "collection": "users",
                "data": {
                    "name": "{{name}}",
                    "email": "{{email}}",
                    "password": "{{password}}",
                },
                "outputVar": "createdRecord"
            }
        ),
        Node(
            id="welcome",
            type=StepKind.EMAIL,
            fields={
                "to": "{{createdRecord.email}}",
                "subject": "Welcome aboard",
                "body": "Hi {{name}}, your account {{createdRecord.email}} is ready."
            }
        ),
    ]

    # Linear chain; the compiler orders it
    edges = [
        Edge(id="e1", source="collect", target="validate"),
        Edge(id="e2", source="validate", target="store_user"),
        Edge(id="e3", source="store_user", target="welcome"),
    ]

    return Graph(name="User Signup", nodes=nodes, edges=edges)


# Sample request body for the demo endpoint
SAMPLE_SIGNUP = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "password": "analytical-engine",
}
