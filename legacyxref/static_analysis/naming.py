"""Naming-pattern and keyword tables

Every annotation that is inferred from a name or a snippet of source text
is a lookup in one of these ordered tables (first match wins). Nothing
here guesses beyond the table contents.
"""

from legacyxref.rules import Rule, RuleTable, contains_any, keyword_table


PARAGRAPH_PURPOSE = keyword_table([
    (("MAIN", "CONTROL"), "Main control flow"),
    (("INIT",), "Initialization"),
    (("READ",), "Read data"),
    (("WRITE",), "Write data"),
    (("UPDATE",), "Update data"),
    (("DELETE",), "Delete data"),
    (("CREATE", "INSERT", "ADD"), "Create/Add data"),
    (("VALID",), "Validation"),
    (("CALC",), "Calculation"),
    (("PROCESS",), "Business processing"),
    (("ERROR", "ERR"), "Error handling"),
    (("OPEN",), "Open files/resources"),
    (("CLOSE",), "Close files/resources"),
    (("PRINT", "REPORT"), "Generate output/report"),
    (("SEARCH", "FIND"), "Search/lookup"),
    (("END", "TERM", "FINAL"), "Termination"),
], default="Business processing")


FILE_MEANING = keyword_table([
    (("INPUT", "IN-"), "Input data file"),
    (("OUTPUT", "OUT-"), "Output data file"),
    (("REPORT", "RPT"), "Report output"),
    (("LOG",), "Log file"),
    (("ERROR", "ERR"), "Error output file"),
    (("MASTER",), "Master data file"),
    (("TRANS",), "Transaction file"),
    (("WORK", "TEMP"), "Temporary work file"),
], default="Data file")


TABLE_ENTITY_KIND = keyword_table([
    (("EMP", "USER", "PERSON"), "employee/user data"),
    (("CUST",), "customer data"),
    (("ORDER", "TRANS"), "transaction data"),
    (("PROD", "ITEM"), "product/item data"),
    (("ACCT", "ACCOUNT"), "account data"),
    (("LOG", "AUDIT"), "audit/log data"),
    (("MAST",), "master data"),
    (("CONFIG", "PARAM"), "configuration data"),
], default="data")

SQL_OPERATION_VERB = {
    "SELECT": "Retrieve",
    "INSERT": "Create new",
    "UPDATE": "Update existing",
    "DELETE": "Remove",
}


def table_role(table_name: str, operation: str) -> str:
    """Describe what a statement does to a table, e.g. 'Retrieve customer data'"""
    verb = SQL_OPERATION_VERB.get(operation, "Access")
    return f"{verb} {TABLE_ENTITY_KIND.evaluate(table_name)}"


DATA_ITEM_MEANING = keyword_table([
    (("STATUS", "STAT"), "Status indicator"),
    (("FLAG", "IND", "SW-"), "Control flag"),
    (("COUNT", "CNT"), "Counter"),
    (("TOTAL", "TOT"), "Accumulated total"),
    (("AMOUNT", "AMT"), "Monetary amount"),
    (("DATE", "DT"), "Date value"),
    (("TIME", "TM"), "Time value"),
    (("KEY",), "Key/identifier"),
    (("CODE", "CD"), "Code value"),
    (("ERROR", "ERR"), "Error information"),
    (("MSG", "MESSAGE"), "Message text"),
    (("ACTION",), "Action control"),
    (("WS-",), "Working storage variable"),
], default="Business data")

SIGNIFICANT_ITEM_KEYWORDS = (
    "STATUS", "CODE", "FLAG", "IND", "INDICATOR", "COUNT", "TOTAL",
    "AMOUNT", "DATE", "TIME", "KEY", "ID", "NUMBER", "NUM", "ACTION",
    "TYPE", "MODE", "ERROR", "MSG", "MESSAGE", "RESULT", "RETURN",
)

is_significant_item = contains_any(SIGNIFICANT_ITEM_KEYWORDS)


CALLED_PROGRAM_ROLE = keyword_table([
    (("LOG", "AUDIT"), "Logging/Audit"),
    (("ERROR", "ERR"), "Error handling"),
    (("VALID",), "Validation"),
    (("CALC",), "Calculation"),
    (("FMT", "FORMAT"), "Formatting"),
    (("UTIL", "COMMON"), "Utility functions"),
    (("DB", "SQL"), "Database access"),
    (("PRINT", "REPORT"), "Reporting"),
    (("SEND", "MSG"), "Messaging"),
], default="External processing")


ERROR_HANDLING = RuleTable([
    Rule(lambda text: "STOP RUN" in text, "Terminate program"),
    Rule(lambda text: "PERFORM" in text and "ERROR" in text, "Execute error routine"),
    Rule(lambda text: "DISPLAY" in text, "Display error message"),
    Rule(lambda text: "MOVE" in text and "ERROR" in text, "Set error status"),
    Rule(lambda text: "ROLLBACK" in text, "Rollback transaction"),
], default="Continue processing")

ERROR_BEHAVIOR = RuleTable([
    Rule(lambda text: "STOP RUN" in text or "ABEND" in text, "ABORT"),
    Rule(lambda text: "GO TO" in text and "END" in text, "SKIP"),
    Rule(lambda text: "PERFORM" in text and "UNTIL" in text, "RETRY"),
], default="CONTINUE")


def _sqlcode_meaning(condition: str) -> str:
    if "NOT" in condition or "<>" in condition:
        return "Database operation failed"
    return "Database operation successful"


CONDITION_MEANING = RuleTable([
    Rule(lambda c: "SQLCODE" in c and "0" in c, _sqlcode_meaning),
    Rule(contains_any(("EOF", "END-OF-FILE")), "Check for end of data"),
    Rule(contains_any(("ERROR", "ERR")), "Error condition check"),
    Rule(contains_any(("VALID",)), "Validation check"),
    Rule(lambda c: "=" in c, "Equality check: {simplified}"),
    Rule(lambda c: ">" in c or "<" in c, "Comparison: {simplified}"),
], default="Condition: {simplified}")


def simplify_condition(condition: str) -> str:
    """Collapse whitespace and drop working-storage prefixes"""
    text = " ".join(condition.split())
    for prefix in ("WS-", "WK-", "W-"):
        text = text.replace(prefix, "")
    return text.strip()


def interpret_condition(condition: str) -> str:
    upper = condition.upper()
    meaning = CONDITION_MEANING.evaluate(upper)
    if callable(meaning):
        return meaning(upper)
    return meaning.format(simplified=simplify_condition(condition))


BUSINESS_CONDITION_KEYWORDS = (
    "SQLCODE", "STATUS", "CODE", "FLAG", "ACTION", "TYPE", "AMOUNT", "COUNT", "TOTAL",
)


def is_business_condition(condition: str) -> bool:
    upper = condition.upper()
    return (contains_any(BUSINESS_CONDITION_KEYWORDS)(upper)
            or "=" in upper or ">" in upper or "<" in upper)
