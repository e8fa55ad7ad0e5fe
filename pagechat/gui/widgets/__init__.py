from pagechat.gui.widgets.page_view import PageView
from pagechat.gui.widgets.chat_task import StreamingChatTask
